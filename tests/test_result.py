from bms_assistant.services.result import Result


class TestResultSuccess:
    def test_success_creates_ok_result(self):
        result = Result.success("parsed")
        assert result.ok is True
        assert result.value == "parsed"
        assert result.error is None
        assert result.status_code == 200

    def test_success_with_different_types(self):
        assert Result.success(42).value == 42
        assert Result.success({"intent": "help"}).value == {"intent": "help"}


class TestResultFailure:
    def test_failure_creates_not_ok_result(self):
        result = Result.failure("Rate limit exceeded", "rate_limited")
        assert result.ok is False
        assert result.error == "Rate limit exceeded"
        assert result.error_code == "rate_limited"
        assert result.value is None

    def test_failure_default_code(self):
        result = Result.failure("Error message")
        assert result.error_code == "unknown"
        assert result.status_code == 500


class TestResultUnwrapOr:
    def test_unwrap_or_returns_value_on_success(self):
        assert Result.success("actual value").unwrap_or("default") == "actual value"

    def test_unwrap_or_returns_default_on_failure(self):
        assert Result.failure("Error", "upstream_error").unwrap_or("default") == "default"

    def test_unwrap_or_with_none_value(self):
        assert Result.success(None).unwrap_or("default") is None


class TestStatusCodes:
    def test_missing_input(self):
        assert Result.failure("Message is required", "missing_input").status_code == 400

    def test_quota_exceeded(self):
        assert Result.failure("Payment required", "quota_exceeded").status_code == 402

    def test_rate_limited(self):
        assert Result.failure("Rate limit exceeded", "rate_limited").status_code == 429

    def test_not_configured(self):
        assert Result.failure("LLM API key not configured", "not_configured").status_code == 500

    def test_unlisted_code(self):
        assert Result.failure("odd", "something_new").status_code == 500
