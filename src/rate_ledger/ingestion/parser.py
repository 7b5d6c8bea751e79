"""Series document parser for ECB reference rate XML."""

from __future__ import annotations

import logging

from bs4 import BeautifulSoup
from lxml import etree

from rate_ledger.core.exceptions import ParseError
from rate_ledger.core.models import Observation, SourceId

logger = logging.getLogger(__name__)

# bs4's xml builder recovers from truncation, so well-formedness is checked here
_STRICT_PARSER = etree.XMLParser(recover=False, resolve_entities=False, no_network=True)


class SeriesParser:
    """Extracts dated observations from an SDMX compact series document.

    The ECB publishes one document per currency:

        <DataSet>
          <Series FREQ="D" CURRENCY="USD" ...>
            <Obs TIME_PERIOD="2024-01-02" OBS_VALUE="1.0956" .../>
            ...

    Element names are matched without their namespace prefix. Values are
    returned as published; interpreting them is the aligner's job.
    """

    def parse(self, payload: str | bytes, source_id: SourceId = "") -> list[Observation]:
        """Parse a series document into observations, in published order.

        Raises:
            ParseError: If the payload is empty or not well-formed XML, has
                no Series element, or an Obs element lacks TIME_PERIOD.
        """
        if not payload or not payload.strip():
            raise ParseError(
                f"Empty series document from {source_id or '<unknown>'}",
                context={"source_id": source_id, "reason": "empty payload"},
            )

        raw = payload.encode("utf-8") if isinstance(payload, str) else payload
        try:
            etree.fromstring(raw, _STRICT_PARSER)
        except etree.XMLSyntaxError as e:
            raise ParseError(
                f"Series document from {source_id or '<unknown>'} is not well-formed XML: {e}",
                context={"source_id": source_id, "reason": str(e)},
            ) from e

        try:
            soup = BeautifulSoup(raw, "xml")
        except Exception as e:
            raise ParseError(
                f"Series document from {source_id or '<unknown>'} rejected: {e}",
                context={"source_id": source_id, "reason": str(e)},
            ) from e

        series = soup.find("Series")
        if series is None:
            raise ParseError(
                f"No Series element in document from {source_id or '<unknown>'}",
                context={"source_id": source_id, "reason": "missing Series"},
            )

        observations: list[Observation] = []
        for obs in series.find_all("Obs"):
            period = obs.get("TIME_PERIOD")
            if not period:
                raise ParseError(
                    f"Obs element without TIME_PERIOD in {source_id or '<unknown>'}",
                    context={"source_id": source_id, "reason": "missing TIME_PERIOD"},
                )
            observations.append(
                Observation(time_period=period.strip(), value=obs.get("OBS_VALUE"))
            )

        logger.debug("Parsed %d observations from %s", len(observations), source_id)
        return observations
