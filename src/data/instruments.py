"""
Instrument spec provider backed by a static mapping (from config.yaml).
"""

from typing import Mapping

from vwap_core.contracts import InstrumentSpec


class StaticInstrumentSpecs:
    """Look up InstrumentSpecs by symbol. Unknown symbols raise KeyError."""

    def __init__(self, specs: Mapping[str, InstrumentSpec]) -> None:
        self._specs = {sym.upper(): spec for sym, spec in specs.items()}

    def spec(self, symbol: str) -> InstrumentSpec:
        try:
            return self._specs[symbol.upper()]
        except KeyError:
            raise KeyError(f"No instrument spec for {symbol!r}") from None

    def symbols(self) -> list[str]:
        return sorted(self._specs)
