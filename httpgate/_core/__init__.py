from httpgate._core._caching import (
    CacheDirective as CacheDirective,
    NoCache as NoCache,
    Private as Private,
    Public as Public,
    response_caching_headers as response_caching_headers,
)
from httpgate._core._headers import (
    AcceptEntry as AcceptEntry,
    EntityTag as EntityTag,
    Headers as Headers,
    parse_accept as parse_accept,
    parse_entity_tag as parse_entity_tag,
    parse_entity_tag_list as parse_entity_tag_list,
)
from httpgate._core._negotiation import (
    Capability as Capability,
    NegotiationConfig as NegotiationConfig,
    negotiate as negotiate,
    select_media_type as select_media_type,
)
from httpgate._core._preconditions import (
    Clock as Clock,
    Precondition as Precondition,
    RequestConditionals as RequestConditionals,
    bind as bind,
    evaluate_preconditions as evaluate_preconditions,
    if_not_specified as if_not_specified,
    precondition_headers as precondition_headers,
    status_for as status_for,
    validate_if_match as validate_if_match,
    validate_if_modified_since as validate_if_modified_since,
    validate_if_none_match as validate_if_none_match,
    validate_if_unmodified_since as validate_if_unmodified_since,
)
from httpgate._core.models import Request as Request, Response as Response

__all__ = (
    ## Preconditions
    "Clock",
    "Precondition",
    "RequestConditionals",
    "bind",
    "evaluate_preconditions",
    "if_not_specified",
    "precondition_headers",
    "status_for",
    "validate_if_match",
    "validate_if_modified_since",
    "validate_if_none_match",
    "validate_if_unmodified_since",
    ## Negotiation
    "Capability",
    "NegotiationConfig",
    "negotiate",
    "select_media_type",
    ## Caching
    "CacheDirective",
    "NoCache",
    "Private",
    "Public",
    "response_caching_headers",
    ## Headers
    "AcceptEntry",
    "EntityTag",
    "Headers",
    "parse_accept",
    "parse_entity_tag",
    "parse_entity_tag_list",
    ## Models
    "Request",
    "Response",
)
