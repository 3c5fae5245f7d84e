from unittest.mock import patch

import pytest


ADMIN_HEADERS = {"X-Admin-Token": "admin-token-123"}


class TestSubmissionRoute:

    def test_health_check(self, receiver_client):
        """Test the health check endpoint."""
        response = receiver_client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_submission_forwarded(self, receiver_client, mock_forwarder):
        """Test that a bare field mapping is handed to the forwarder."""
        response = receiver_client.post(
            "/submissions/contact", json={"email": "a@b.com"}
        )

        assert response.status_code == 202
        assert response.json() == {"status": "accepted"}
        mock_forwarder.handle_submission.assert_awaited_once_with(
            "contact", {"email": "a@b.com"}
        )

    def test_fields_envelope(self, receiver_client, mock_forwarder):
        """Test that a {"fields": ...} envelope is unwrapped."""
        response = receiver_client.post(
            "/submissions/42",
            json={"form_id": "ignored", "fields": {"name": "Ada"}},
        )

        assert response.status_code == 202
        mock_forwarder.handle_submission.assert_awaited_once_with("42", {"name": "Ada"})

    def test_empty_form_id_in_path(self, receiver_client, mock_forwarder):
        """Test that an empty form id from the path reaches the forwarder."""
        response = receiver_client.post("/submissions/", json={"email": "a@b.com"})

        assert response.status_code == 202
        mock_forwarder.handle_submission.assert_awaited_once_with(
            "", {"email": "a@b.com"}
        )

    def test_form_id_with_slash(self, receiver_client, mock_forwarder):
        response = receiver_client.post("/submissions/landing/contact", json={"a": "b"})

        assert response.status_code == 202
        mock_forwarder.handle_submission.assert_awaited_once_with(
            "landing/contact", {"a": "b"}
        )

    @pytest.mark.parametrize("form_id", ["", "contact", "a/b"])
    def test_envelope_form_id(self, receiver_client, mock_forwarder, form_id):
        """Test that /submissions takes the form id from the envelope."""
        response = receiver_client.post(
            "/submissions", json={"form_id": form_id, "fields": {"name": "Ada"}}
        )

        assert response.status_code == 202
        mock_forwarder.handle_submission.assert_awaited_once_with(
            form_id, {"name": "Ada"}
        )

    def test_envelope_without_form_id(self, receiver_client, mock_forwarder):
        response = receiver_client.post("/submissions", json={"email": "a@b.com"})

        assert response.status_code == 202
        mock_forwarder.handle_submission.assert_awaited_once_with(
            "", {"email": "a@b.com"}
        )

    def test_envelope_form_id_must_be_string(self, receiver_client, mock_forwarder):
        response = receiver_client.post(
            "/submissions", json={"form_id": 7, "fields": {"name": "Ada"}}
        )

        assert response.status_code == 400
        mock_forwarder.handle_submission.assert_not_awaited()

    @pytest.mark.parametrize("constant", ["NaN", "Infinity", "-Infinity"])
    def test_non_finite_numbers_rejected(self, receiver_client, mock_forwarder, constant):
        """Test that JSON extensions for non-finite numbers are refused."""
        response = receiver_client.post(
            "/submissions/contact",
            content=f'{{"score": {constant}}}'.encode(),
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert "Invalid JSON payload" in response.json()["detail"]
        mock_forwarder.handle_submission.assert_not_awaited()

    def test_invalid_json(self, receiver_client, mock_forwarder):
        """Test that receiving invalid JSON returns a 400."""
        response = receiver_client.post(
            "/submissions/contact",
            content=b"this is not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert "Invalid JSON payload" in response.json()["detail"]
        mock_forwarder.handle_submission.assert_not_awaited()

    def test_scalar_body_rejected(self, receiver_client, mock_forwarder):
        response = receiver_client.post("/submissions/contact", json="hello")
        assert response.status_code == 400
        mock_forwarder.handle_submission.assert_not_awaited()

    def test_forwarder_error_does_not_fail_submission(
        self, receiver_client, mock_forwarder
    ):
        """Test that the submission is accepted even if forwarding blows up."""
        mock_forwarder.handle_submission.side_effect = Exception("unexpected")

        with patch("metform_n8n_bridge.receiver.routes.logger") as mock_logger:
            response = receiver_client.post("/submissions/contact", json={"a": "b"})

        assert response.status_code == 202
        mock_logger.error.assert_called_once()

    def test_submission_token_required_when_configured(
        self, receiver_client, bridge_config, mock_forwarder
    ):
        bridge_config.submission_token = "submit-token"

        response = receiver_client.post("/submissions/contact", json={"a": "b"})
        assert response.status_code == 401

        response = receiver_client.post(
            "/submissions/contact",
            json={"a": "b"},
            headers={"X-Submission-Token": "wrong"},
        )
        assert response.status_code == 401

        response = receiver_client.post(
            "/submissions/contact",
            json={"a": "b"},
            headers={"X-Submission-Token": "submit-token"},
        )
        assert response.status_code == 202
        mock_forwarder.handle_submission.assert_awaited_once()


class TestSettingsRoutes:

    def test_read_settings_masks_secret(self, receiver_client, valid_settings):
        response = receiver_client.get("/settings", headers=ADMIN_HEADERS)

        assert response.status_code == 200
        assert response.json() == {
            "enabled": True,
            "webhook_url": valid_settings.webhook_url,
            "secret": "********",
        }

    def test_missing_admin_token(self, receiver_client):
        response = receiver_client.get("/settings")
        assert response.status_code == 401

    def test_settings_api_disabled_without_admin_token(
        self, receiver_client, bridge_config
    ):
        bridge_config.admin_token = None

        response = receiver_client.get("/settings", headers=ADMIN_HEADERS)
        assert response.status_code == 403
        assert response.json()["detail"] == "Settings API disabled"

    def test_update_settings(self, receiver_client, settings_store):
        response = receiver_client.put(
            "/settings",
            json={"enabled": False, "secret": "a-much-longer-secret"},
            headers=ADMIN_HEADERS,
        )

        assert response.status_code == 200
        assert response.json()["errors"] == []
        assert response.json()["settings"]["enabled"] is False
        assert settings_store.load().secret == "a-much-longer-secret"

    def test_update_settings_rejects_http_url(
        self, receiver_client, settings_store, valid_settings
    ):
        response = receiver_client.put(
            "/settings",
            json={"webhook_url": "http://insecure.example.com/hook"},
            headers=ADMIN_HEADERS,
        )

        assert response.status_code == 200
        assert response.json()["errors"] == ["Webhook URL must use HTTPS for security."]
        assert settings_store.load().webhook_url == valid_settings.webhook_url
