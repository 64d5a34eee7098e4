class LCLError(Exception): ...


class MalformedTimestampError(LCLError): ...


class NoValidPointsError(LCLError): ...


class NoDataRetrievedError(LCLError): ...


class FetchCancelledError(LCLError): ...


class AggregationError(LCLError): ...


class ConfigError(LCLError): ...


def require(condition: bool, message: str, exc: type[LCLError] = LCLError):
    """Raise the given exception if condition is False."""
    if not condition:
        raise exc(message)
