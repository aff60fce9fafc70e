__all__ = ("HttpGateError", "ParseError")


class HttpGateError(Exception): ...


class ParseError(HttpGateError): ...
