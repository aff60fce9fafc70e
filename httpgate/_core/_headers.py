from __future__ import annotations

from dataclasses import dataclass
from typing import (
    Any,
    ClassVar,
    Iterator,
    List,
    Mapping,
    MutableMapping,
    Optional,
    Union,
)

from httpgate._exceptions import ParseError

"""
HTTP token, quoted-string and list parsing utilities.

These functions implement the RFC 7230 parsing rules for HTTP/1.1 tokens,
quoted strings and comma-separated lists, plus the entity-tag (RFC 7232)
and Accept (RFC 7231) grammars built on top of them.
"""


def is_char(c: str) -> bool:
    """
    Check if character is a valid ASCII character (0-127).

    Per RFC 7230: CHAR = any US-ASCII character (octets 0 - 127)
    """
    if not c:
        return False
    return ord(c) <= 127


def is_ctl(c: str) -> bool:
    """
    Check if character is a control character.

    Per RFC 7230: CTL = control characters (0-31 and 127)
    """
    if not c:
        return False
    b = ord(c)
    return b <= 31 or b == 127


def is_separator(c: str) -> bool:
    """
    Check if character is an HTTP separator.

    Per RFC 2616 Section 2.2:
    separators = "(" | ")" | "<" | ">" | "@"
               | "," | ";" | ":" | "\" | <">
               | "/" | "[" | "]" | "?" | "="
               | "{" | "}" | SP | HT
    """
    if not c:
        return False
    return c in '()<>@,;:\\"/[]?={} \t'


def is_token(c: str) -> bool:
    """
    Check if character is valid in an HTTP token.

    Per RFC 7230 Section 3.2.6:
    token = 1*tchar

    Examples:
        >>> is_token('a')
        True
        >>> is_token('-')
        True
        >>> is_token(',')
        False
        >>> is_token('=')
        False
    """
    return is_char(c) and not is_ctl(c) and not is_separator(c)


def is_token_string(value: str) -> bool:
    return bool(value) and all(is_token(c) for c in value)


def is_qd_text(c: str) -> bool:
    r"""
    Check if character is valid in quoted-text.

    Per RFC 7230 Section 3.2.6:
    qdtext = HTAB / SP / %x21 / %x23-5B / %x5D-7E / obs-text
    """
    if not c:
        return False

    b = ord(c)
    return (
        b == 0x09  # HTAB
        or b == 0x20  # SP
        or b == 0x21  # !
        or (0x23 <= b <= 0x5B)  # # to [ (skips " which is 0x22)
        or (0x5D <= b <= 0x7E)  # ] to ~ (skips \ which is 0x5C)
        or b >= 0x80
    )  # obs-text


def is_etag_char(c: str) -> bool:
    """
    Check if character is valid inside an opaque-tag.

    Per RFC 7232 Section 2.3:
    etagc = %x21 / %x23-7E / obs-text
    """
    if not c:
        return False
    b = ord(c)
    return b == 0x21 or (0x23 <= b <= 0x7E) or b >= 0x80


def http_unquote_pair(c: str) -> str:
    """
    Unquote a single escaped character from a quoted-pair.

    Per RFC 7230 Section 3.2.6:
    quoted-pair = "\" ( HTAB / SP / VCHAR / obs-text )

    Invalid characters are replaced with '?'
    """
    if not c:
        return "?"

    b = ord(c)
    if b == 0x09 or b == 0x20 or (0x21 <= b <= 0x7E) or b >= 0x80:
        return c
    return "?"


def http_unquote(raw: str) -> tuple[int, str]:
    """
    Unquote an HTTP quoted-string.

    The raw string must begin with a double quote ("). Only the first
    quoted string is parsed. The function returns the number of characters
    consumed and the unquoted result, or (-1, "") on failure.

    Examples:
        >>> http_unquote('"hello"')
        (7, 'hello')
        >>> http_unquote('"hello\\"world"')
        (14, 'hello"world')
        >>> http_unquote('"test')
        (-1, '')
    """
    if not raw or raw[0] != '"':
        return -1, ""

    buf: list[str] = []
    i = 1

    while i < len(raw):
        b = raw[i]

        if b == '"':
            return i + 1, "".join(buf)

        elif b == "\\":
            if i + 1 >= len(raw):
                return -1, ""
            buf.append(http_unquote_pair(raw[i + 1]))
            i += 2

        else:
            buf.append(b if is_qd_text(b) else "?")
            i += 1

    return -1, ""


def split_header_list(value: str) -> List[str]:
    """
    Split a comma-separated header value into its members.

    Commas inside quoted strings don't split. Empty members (allowed by the
    RFC 7230 Section 7 list rule) are dropped and whitespace around each
    member is stripped.

    Examples:
        >>> split_header_list('a, "b,c" , ,d')
        ['a', '"b,c"', 'd']
    """
    members: List[str] = []
    current: List[str] = []
    in_quotes = False
    escaped = False

    for c in value:
        if escaped:
            current.append(c)
            escaped = False
        elif in_quotes and c == "\\":
            current.append(c)
            escaped = True
        elif c == '"':
            current.append(c)
            in_quotes = not in_quotes
        elif c == "," and not in_quotes:
            members.append("".join(current))
            current = []
        else:
            current.append(c)
    members.append("".join(current))

    return [member.strip(" \t") for member in members if member.strip(" \t")]


class Headers(MutableMapping[str, str]):
    def __init__(self, headers: Mapping[str, Union[str, List[str]]]) -> None:
        self._headers = {k.lower(): ([v] if isinstance(v, str) else v[:]) for k, v in headers.items()}

    def get_list(self, key: str) -> Optional[List[str]]:
        return self._headers.get(key.lower(), None)

    def __getitem__(self, key: str) -> str:
        return ", ".join(self._headers[key.lower()])

    def __setitem__(self, key: str, value: str) -> None:
        self._headers.setdefault(key.lower(), []).append(value)

    def __delitem__(self, key: str) -> None:
        del self._headers[key.lower()]

    def __iter__(self) -> Iterator[str]:
        return iter(self._headers)

    def __len__(self) -> int:
        return len(self._headers)

    def __repr__(self) -> str:
        return repr(self._headers)

    def __str__(self) -> str:
        return str(self._headers)

    def __eq__(self, other_headers: Any) -> bool:
        return isinstance(other_headers, Headers) and self._headers == other_headers._headers  # type: ignore


@dataclass(frozen=True)
class EntityTag:
    """
    An entity tag as defined by RFC 7232 Section 2.3.

    ``tag`` holds the opaque-tag exactly as it appears on the wire, that is
    including the surrounding double quotes (``'"v1"'``). The only unquoted
    value is the ``*`` wildcard used by If-Match / If-None-Match, available
    as ``EntityTag.ANY``.

    A strong tag that matches guarantees the representations are byte for
    byte identical. A matching weak tag only promises that they are
    semantically equivalent, so a weak tag must change whenever the
    meaning of the content changes.

    Examples:
        >>> EntityTag.from_string(False, "v1")
        EntityTag(tag='"v1"', is_weak=False)
        >>> str(EntityTag.from_string(True, "v1"))
        'W/"v1"'
    """

    tag: str
    is_weak: bool = False

    ANY: ClassVar["EntityTag"]

    @classmethod
    def from_string(cls, is_weak: bool, value: str) -> "EntityTag":
        """
        Build an entity tag from its value without quotes or the ``W/`` prefix.
        """
        return cls(tag=f'"{value}"', is_weak=is_weak)

    @property
    def value(self) -> str:
        """The opaque-tag without its surrounding quotes."""
        if self.is_any:
            return self.tag
        return self.tag[1:-1]

    @property
    def is_any(self) -> bool:
        return self.tag == "*"

    def strong_equals(self, other: "EntityTag") -> bool:
        """
        RFC 7232 Section 2.3.2 strong comparison: both tags must be strong
        and their opaque-tags identical.
        """
        return not self.is_weak and not other.is_weak and self.tag == other.tag

    def weak_equals(self, other: "EntityTag") -> bool:
        """
        RFC 7232 Section 2.3.2 weak comparison: opaque-tags must be identical,
        either or both may be weak.
        """
        return self.tag == other.tag

    def __str__(self) -> str:
        if self.is_weak:
            return f"W/{self.tag}"
        return self.tag


EntityTag.ANY = EntityTag(tag="*")


def parse_entity_tag(value: str) -> EntityTag:
    """
    Parse a single entity tag.

    Per RFC 7232 Section 2.3:
    entity-tag = [ weak ] opaque-tag
    weak       = %x57.2F ; "W/", case-sensitive
    opaque-tag = DQUOTE *etagc DQUOTE

    Raises:
        ParseError: when the value is not a valid entity tag.

    Examples:
        >>> parse_entity_tag('W/"abc"')
        EntityTag(tag='"abc"', is_weak=True)
        >>> parse_entity_tag('"abc"').is_weak
        False
    """
    value = value.strip(" \t")
    is_weak = False

    if value.startswith("W/"):
        is_weak = True
        value = value[2:]

    if len(value) < 2 or value[0] != '"' or value[-1] != '"':
        raise ParseError(f"The entity tag {value!r} must be enclosed in double quotes.")

    for c in value[1:-1]:
        if not is_etag_char(c):
            raise ParseError(f"The character {c!r} is not permitted in an entity tag.")

    return EntityTag(tag=value, is_weak=is_weak)


def parse_entity_tag_list(value: Optional[str]) -> List[EntityTag]:
    """
    Parse an If-Match / If-None-Match header value.

    Per RFC 7232 Section 3.1 / 3.2:
    If-Match = "*" / 1#entity-tag

    Returns an empty list for an absent or blank value and ``[EntityTag.ANY]``
    for the wildcard.

    Raises:
        ParseError: when a member is not a valid entity tag.

    Examples:
        >>> parse_entity_tag_list('"a", W/"b"')
        [EntityTag(tag='"a"', is_weak=False), EntityTag(tag='"b"', is_weak=True)]
        >>> parse_entity_tag_list("*") == [EntityTag.ANY]
        True
    """
    if value is None or not value.strip():
        return []

    members = split_header_list(value)
    if members == ["*"]:
        return [EntityTag.ANY]

    return [parse_entity_tag(member) for member in members]


@dataclass(frozen=True)
class AcceptEntry:
    """
    One media range of an Accept header with its quality weight.
    """

    media_type: str
    quality: float = 1.0


def parse_quality(value: str) -> float:
    """
    Parse a qvalue.

    Per RFC 7231 Section 5.3.1:
    qvalue = ( "0" [ "." 0*3DIGIT ] ) / ( "1" [ "." 0*3("0") ] )

    Raises:
        ParseError: when the weight is not a number in [0, 1].
    """
    try:
        quality = float(value)
    except ValueError:
        raise ParseError(f"The quality value {value!r} is not a number.")

    if not 0.0 <= quality <= 1.0:
        raise ParseError(f"The quality value {value!r} must be between 0 and 1.")
    return quality


def parse_accept_entry(member: str) -> AcceptEntry:
    """
    Parse one media range of an Accept header.

    Per RFC 7231 Section 5.3.2:
    media-range = ( "*/*" / ( type "/" "*" ) / ( type "/" subtype ) ) *( OWS ";" OWS parameter )

    Parameters other than ``q`` are accepted but dropped, matching how the
    media type is looked up in negotiation rules.
    """
    media_range, _, params = member.partition(";")
    media_type = media_range.strip(" \t")

    type_, slash, subtype = media_type.partition("/")
    if not slash or not is_token_string(type_) or not is_token_string(subtype):
        raise ParseError(f"The media range {media_type!r} is not valid.")

    quality = 1.0
    while params:
        param, _, params = _next_parameter(params)
        if not param:
            continue
        name, eq, raw_value = param.partition("=")
        name = name.strip(" \t").lower()
        if not eq or not is_token_string(name):
            raise ParseError(f"The media type parameter {param!r} is not valid.")
        raw_value = raw_value.strip(" \t")
        if raw_value.startswith('"'):
            eaten, unquoted = http_unquote(raw_value)
            if eaten == -1:
                raise ParseError("Invalid quotes around the parameter value.")
            raw_value = unquoted
        if name == "q":
            quality = parse_quality(raw_value)

    return AcceptEntry(media_type=media_type, quality=quality)


def _next_parameter(params: str) -> tuple[str, str, str]:
    # splits on the first ';' outside of a quoted-string
    in_quotes = False
    escaped = False
    for i, c in enumerate(params):
        if escaped:
            escaped = False
        elif in_quotes and c == "\\":
            escaped = True
        elif c == '"':
            in_quotes = not in_quotes
        elif c == ";" and not in_quotes:
            return params[:i].strip(" \t"), ";", params[i + 1 :]
    return params.strip(" \t"), "", ""


def parse_accept(value: Optional[str]) -> List[AcceptEntry]:
    """
    Parse an Accept header value into its media ranges, in header order.

    Returns an empty list for an absent or blank header.

    Raises:
        ParseError: when a media range or its quality weight is malformed.

    Examples:
        >>> parse_accept("text/plain;q=0.5, application/json;q=0.9")
        [AcceptEntry(media_type='text/plain', quality=0.5), AcceptEntry(media_type='application/json', quality=0.9)]
        >>> parse_accept("")
        []
    """
    if value is None or not value.strip():
        return []
    return [parse_accept_entry(member) for member in split_header_list(value)]
