import json


class FakeGateway:
    """Stand-in for OpenRouterClient with scripted stream and completion results."""

    def __init__(self, stream=None, completion=None, stream_error=None, completion_error=None):
        self.stream = stream
        self.completion = completion
        self.stream_error = stream_error
        self.completion_error = completion_error
        self.calls = []

    def send_streaming_message(self, messages, use_case="general"):
        self.calls.append(("stream", messages, use_case))
        if self.stream_error:
            raise self.stream_error
        return self.stream

    def send_message(self, messages, use_case="general", stream=False):
        self.calls.append(("message", messages, use_case))
        if self.completion_error:
            raise self.completion_error
        return self.completion


class FakeStreamResponse:
    def __init__(self, lines):
        self._lines = lines
        self.closed = False

    def iter_lines(self):
        for line in self._lines:
            yield line

    def close(self):
        self.closed = True


def completion(text):
    return {"id": "gen-1", "choices": [{"message": {"role": "assistant", "content": text}}], "usage": {"total_tokens": 3}}


def sse(*tokens):
    lines = [b"data: " + json.dumps({"choices": [{"delta": {"content": t}}]}).encode() for t in tokens]
    return lines + [b"data: [DONE]"]
