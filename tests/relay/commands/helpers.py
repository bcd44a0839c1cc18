"""Fake HTTP layer for the AI backend and the Graph send API."""

from unittest.mock import MagicMock


def fake_post(ai_traces=None, ai_error=None, send_error=None, message_id="mid.reply"):
    """
    Side effect for a patched ``requests.post``: interaction URLs get
    ``ai_traces`` (or raise ``ai_error``), every other URL is treated as a send.
    """

    def _post(url, **kwargs):
        response = MagicMock()
        response.raise_for_status.return_value = None
        if url.endswith("/interact"):
            if ai_error is not None:
                raise ai_error
            response.json.return_value = ai_traces if ai_traces is not None else []
        else:
            if send_error is not None:
                raise send_error
            response.json.return_value = {"recipient_id": "S1", "message_id": message_id}
        return response

    return _post


def ai_calls(mock_post):
    return [c for c in mock_post.call_args_list if c.args[0].endswith("/interact")]


def send_calls(mock_post):
    return [c for c in mock_post.call_args_list if not c.args[0].endswith("/interact")]


def text_trace(message):
    return {"type": "text", "payload": {"message": message}}
