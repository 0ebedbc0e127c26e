"""
Analysis Error Taxonomy

Every failure the pipeline can surface is a subclass of AnalysisError. Each
carries a machine readable error_code, the HTTP status the API answers with,
and the pipeline stage it happened in (set by the orchestrator).
"""

from typing import Any, Dict, List, Optional

PARSE_SNIPPET_LENGTH = 2000


class AnalysisError(Exception):
    """Base class for all typed pipeline failures"""

    error_code = "analysis_failed"
    status_code = 500

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.stage = stage

    def details(self) -> Dict[str, Any]:
        """Extra diagnostic fields included in API error bodies"""
        return {}

    def to_dict(self) -> Dict[str, Any]:
        body = {
            "error": self.error_code,
            "message": self.message,
            "stage": self.stage,
        }
        body.update(self.details())
        return body


# Extraction (per document, non-fatal)

class ExtractionError(AnalysisError):
    error_code = "extraction_failed"
    status_code = 422

    def __init__(self, message: str, filename: str = "", stage: Optional[str] = None):
        super().__init__(message, stage)
        self.filename = filename

    def details(self) -> Dict[str, Any]:
        return {"filename": self.filename}


class UnsupportedFormat(ExtractionError):
    error_code = "unsupported_format"
    status_code = 415


class EmptyResult(ExtractionError):
    error_code = "empty_result"
    status_code = 422


class UpstreamQuotaExceeded(ExtractionError):
    error_code = "upstream_quota_exceeded"
    status_code = 429


class UpstreamAuthFailure(ExtractionError):
    error_code = "upstream_auth_failure"
    status_code = 503


class UpstreamContentRejected(ExtractionError):
    error_code = "upstream_content_rejected"
    status_code = 422


# LLM completion calls (fatal to the stage)

class LLMError(AnalysisError):
    error_code = "llm_failed"
    status_code = 502


class LLMTimeout(LLMError):
    error_code = "llm_timeout"
    status_code = 504


class LLMQuotaExceeded(LLMError):
    error_code = "llm_quota_exceeded"
    status_code = 429


class LLMAuthFailure(LLMError):
    error_code = "llm_auth_failure"
    status_code = 503


# Response validation

class ParseFailure(AnalysisError):
    """LLM output could not be turned into JSON, even after repair"""

    error_code = "parse_failure"
    status_code = 502

    def __init__(self, message: str, raw_response: str = "", stage: Optional[str] = None):
        super().__init__(message, stage)
        self.snippet = (raw_response or "")[:PARSE_SNIPPET_LENGTH]

    def details(self) -> Dict[str, Any]:
        return {"snippet": self.snippet}


class SchemaIncomplete(AnalysisError):
    """Parsed JSON lacks required top-level keys"""

    error_code = "schema_incomplete"
    status_code = 502

    def __init__(self, message: str, missing_keys: Optional[List[str]] = None, stage: Optional[str] = None):
        super().__init__(message, stage)
        self.missing_keys = list(missing_keys or [])

    def details(self) -> Dict[str, Any]:
        return {"missingKeys": self.missing_keys}


class NoUsableInput(AnalysisError):
    """Not a single document yielded text"""

    error_code = "no_usable_input"
    status_code = 422

    def __init__(self, message: str, failures: Optional[List[ExtractionError]] = None, stage: Optional[str] = None):
        super().__init__(message, stage)
        self.failures = list(failures or [])

        # Surface upstream quota/auth problems when every document hit the same one
        failure_types = {type(failure) for failure in self.failures}
        if failure_types == {UpstreamQuotaExceeded}:
            self.status_code = UpstreamQuotaExceeded.status_code
        elif failure_types == {UpstreamAuthFailure}:
            self.status_code = UpstreamAuthFailure.status_code

    def details(self) -> Dict[str, Any]:
        return {
            "failedDocuments": [
                {"filename": f.filename, "errorCode": f.error_code, "message": f.message}
                for f in self.failures
            ]
        }
