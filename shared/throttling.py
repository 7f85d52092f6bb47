"""Rate throttles that accept multi-unit periods such as ``10/10m``."""

from __future__ import annotations

import re

from rest_framework.throttling import SimpleRateThrottle  # type: ignore

_PERIOD = re.compile(r"^(\d*)([smhd])")
_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400}


class WindowRateThrottle(SimpleRateThrottle):
    """``SimpleRateThrottle`` whose period may carry a multiplier (``5m``, ``2h``)."""

    def parse_rate(self, rate):  # type: ignore
        if rate is None:
            return (None, None)
        num, period = rate.split("/")
        match = _PERIOD.match(period.strip())
        if match is None:
            raise ValueError(f"Invalid throttle period: {period!r}")
        multiplier = int(match.group(1) or 1)
        return int(num), multiplier * _SECONDS[match.group(2)]


class ClientIpThrottle(WindowRateThrottle):
    def get_cache_key(self, request, view):  # type: ignore
        return self.cache_format % {"scope": self.scope, "ident": self.get_ident(request)}
