from intake_bot.services.result import TRANSIENT, VALIDATION, Result


class TestResult:
    def test_success(self):
        result = Result.success("page-1")
        assert result.ok is True
        assert result.value == "page-1"
        assert result.error is None

    def test_failure_defaults_to_transient(self):
        result = Result.failure("boom")
        assert result.ok is False
        assert result.error == "boom"
        assert result.error_code == TRANSIENT
        assert result.retryable is True

    def test_validation_failure_is_not_retryable(self):
        result = Result.failure("bad property", VALIDATION)
        assert result.retryable is False

    def test_success_is_not_retryable(self):
        assert Result.success(1).retryable is False
