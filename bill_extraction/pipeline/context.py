"""
Extraction Context.

The input of one pipeline run: either raw text (an email body) or a raw
document buffer, plus language, source identifiers and an optional
caller-supplied field schema.
"""

from dataclasses import dataclass
from typing import Any, Optional, Sequence, Union

from bill_extraction.utils.exceptions import InvalidInputError
from bill_extraction.input_handler.binary_normalizer import RawDocument
from bill_extraction.extraction.extraction_result import BillSource
from bill_extraction.language.detection import LANGUAGE_AUTO, SUPPORTED_LANGUAGES
from bill_extraction.reconciliation.schema import SchemaSnapshot

SchemaInput = Union[SchemaSnapshot, Sequence[Any]]


@dataclass
class ExtractionContext:
    """
    Input to ExtractionOrchestrator.run.

    Exactly one of ``raw_text`` and ``raw_document`` must be given.

    Attributes:
        raw_text: Email body or other plain text
        raw_document: Document bytes (or an already normalized RawDocument)
        language: "en", "hu" or "auto"; None uses language.default
        message_id: Source message identifier
        attachment_id: Source attachment identifier
        file_name: Original file name
        user_field_schema: Pre-fetched schema snapshot or entries
        user_id: Owner used to fetch the schema from a provider
        apply_stemming: Run the Hungarian stem analysis; None uses stemming.enabled
        debug: Attach a debug trace to the result

    Example:
        >>> context = ExtractionContext(raw_text=email_body, language="hu")
        >>> result = ExtractionOrchestrator().run(context)
    """
    raw_text: Optional[str] = None
    raw_document: Optional[Union[RawDocument, bytes, bytearray, memoryview]] = None
    language: Optional[str] = None
    message_id: Optional[str] = None
    attachment_id: Optional[str] = None
    file_name: Optional[str] = None
    user_field_schema: Optional[SchemaInput] = None
    user_id: Optional[str] = None
    apply_stemming: Optional[bool] = None
    debug: bool = False

    @property
    def is_document(self) -> bool:
        return self.raw_document is not None

    @property
    def source(self) -> BillSource:
        return BillSource(
            type="pdf" if self.is_document else "email",
            message_id=self.message_id,
            attachment_id=self.attachment_id,
            file_name=self.file_name,
        )

    def validate(self) -> None:
        """
        Check the invariants of the context.

        Raises:
            InvalidInputError: If both or neither input form is present, an
                               input has the wrong type, or the language is
                               not supported.
        """
        has_text = self.raw_text is not None
        has_document = self.raw_document is not None

        if has_text == has_document:
            raise InvalidInputError(
                "Exactly one of raw_text and raw_document is required",
                {"raw_text": has_text, "raw_document": has_document}
            )
        if has_text and not isinstance(self.raw_text, str):
            raise InvalidInputError(
                "raw_text must be a string", {"type": type(self.raw_text).__name__}
            )
        if has_document and not isinstance(self.raw_document, (RawDocument, bytes, bytearray, memoryview)):
            raise InvalidInputError(
                "raw_document must be bytes or a RawDocument", {"type": type(self.raw_document).__name__}
            )

        if self.language is not None and self.language not in SUPPORTED_LANGUAGES + (LANGUAGE_AUTO,):
            raise InvalidInputError(
                f"Unsupported language: {self.language!r}",
                {"supported": list(SUPPORTED_LANGUAGES) + [LANGUAGE_AUTO]}
            )
