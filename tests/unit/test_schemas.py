"""Unit tests for submission and heartbeat schemas."""
import pytest
from pydantic import ValidationError
from compute_relay.schemas.job import HeartbeatIngest, JobSubmission, parse_flag


class TestParseFlag:
    """Test loose boolean parsing of form values."""

    @pytest.mark.parametrize("raw", [True, "true", "Yes", "y", "1", 2, " YES "])
    def test_truthy_values(self, raw):
        assert parse_flag(raw) is True

    @pytest.mark.parametrize("raw", [False, "false", "No", "n", "0", 0])
    def test_falsy_values(self, raw):
        assert parse_flag(raw) is False

    @pytest.mark.parametrize("raw", [None, "", "   ", "maybe"])
    def test_blank_or_unknown_uses_default(self, raw):
        assert parse_flag(raw) is True
        assert parse_flag(raw, default=False) is False


class TestJobSubmission:
    """Test JobSubmission validation."""

    def test_defaults(self):
        """Test omitted fields fall back to their defaults."""
        submission = JobSubmission()

        assert submission.correlation_id is None
        assert submission.domain_value == 4.0
        assert submission.generate_follow_up is True
        assert submission.max_retries is None

    def test_loose_follow_up_flag(self):
        """Test generate_follow_up accepts y/n style values."""
        assert JobSubmission(generate_follow_up="n").generate_follow_up is False
        assert JobSubmission(generate_follow_up="1").generate_follow_up is True

    def test_blank_strings_become_none(self):
        submission = JobSubmission(correlation_id="  ", upload_url="", upload_token=" ")

        assert submission.correlation_id is None
        assert submission.upload_url is None
        assert submission.upload_token is None

    def test_domain_value_must_be_positive(self):
        with pytest.raises(ValidationError):
            JobSubmission(domain_value=0)

    def test_negative_max_retries_rejected(self):
        with pytest.raises(ValidationError):
            JobSubmission(max_retries=-1)

    def test_token_hidden_from_repr(self):
        """Test the upload credential never shows up in logs."""
        submission = JobSubmission(upload_token="super-secret")

        assert "super-secret" not in repr(submission)


class TestHeartbeatIngest:
    """Test HeartbeatIngest validation."""

    def test_strips_whitespace(self):
        heartbeat = HeartbeatIngest(correlation_id=" job-1 ", message=" 50% ")

        assert heartbeat.correlation_id == "job-1"
        assert heartbeat.message == "50%"

    def test_empty_message_rejected(self):
        with pytest.raises(ValidationError):
            HeartbeatIngest(correlation_id="job-1", message="   ")
