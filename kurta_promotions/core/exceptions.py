"""
Promotion service errors

Each error knows its machine-readable code, a P0-P3 severity and the HTTP
status it maps to, and serializes to the API error envelope via to_dict().

    PromotionsBaseError
    ├── PromotionInputError              400  bad cart or request
    ├── PromotionDefinitionError         422  bad promotion data
    │   └── UnsupportedPromotionKindError
    └── PromotionComputationError        500  a strategy blew up
"""
from typing import Optional, Dict, Any


class PromotionsBaseError(Exception):
    """
    Root of the promotion error hierarchy.

    Attributes:
        message: Human-readable description
        code: Stable identifier clients can branch on
        details: Structured context (field name, promotion id, ...)
        severity: P0 (page someone) to P3 (ignore)
    """

    default_code: str = "PROMOTIONS_ERROR"
    default_severity: str = "P2"
    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = dict(details or {})
        self.severity = severity or self.default_severity

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": type(self).__name__,
            "code": self.code,
            "message": self.message,
            "severity": self.severity,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.code}: {self.message!r})"


class PromotionInputError(PromotionsBaseError):
    """The evaluation request itself is unusable; nothing was evaluated."""
    default_code = "PROMOTION_INPUT_INVALID"
    default_severity = "P3"
    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", None) or {}
        details["field"] = field
        super().__init__(message, details=details, **kwargs)


class PromotionDefinitionError(PromotionsBaseError):
    """A stored promotion is malformed (bad tier, BXGY rule, condition, ...)."""
    default_code = "PROMOTION_DEFINITION_INVALID"
    status_code = 422

    def __init__(self, message: str, promotion_id: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", None) or {}
        details["promotion_id"] = promotion_id
        super().__init__(message, details=details, **kwargs)


class UnsupportedPromotionKindError(PromotionDefinitionError):
    default_code = "PROMOTION_KIND_UNSUPPORTED"


class PromotionComputationError(PromotionsBaseError):
    """Discount computation failed for one promotion."""
    default_code = "PROMOTION_COMPUTATION_FAILED"
    default_severity = "P1"

    def __init__(self, message: str, promotion_id: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", None) or {}
        details["promotion_id"] = promotion_id
        super().__init__(message, details=details, **kwargs)
