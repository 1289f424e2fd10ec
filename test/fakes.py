"""Hand-written stand-ins for the LLM providers and GCS."""
import json


class FakeLLM:
    """
    Scripted completion client.

    complete_responses / summaries are consumed in order; an Exception
    instance in either list is raised instead of returned.
    """

    def __init__(self, complete_responses=None, summaries=None):
        self.complete_responses = list(complete_responses or [])
        self.summaries = list(summaries or [])
        self.complete_calls = []
        self.summary_calls = []

    def complete(self, prompt, **kwargs):
        self.complete_calls.append((prompt, kwargs))
        response = self.complete_responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def generate_structured_summary(self, text, **kwargs):
        self.summary_calls.append(dict(text=text, **kwargs))
        summary = self.summaries.pop(0)
        if isinstance(summary, Exception):
            raise summary
        return summary


class FakeTextProvider:
    """Stands in for GeminiService / OpenAIService generate_text."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.prompts = []

    def generate_text(self, prompt, **kwargs):
        self.prompts.append(prompt)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakeRateLimiter:
    def __init__(self):
        self.waits = 0

    def wait(self):
        self.waits += 1


class MockBlob:
    def __init__(self, store, name):
        self.store = store
        self.name = name

    def exists(self):
        return self.name in self.store

    def download_as_text(self):
        data = self.store[self.name]
        return data.decode("utf-8") if isinstance(data, bytes) else data

    def download_as_bytes(self):
        data = self.store[self.name]
        return data if isinstance(data, bytes) else data.encode("utf-8")

    def upload_from_string(self, data, content_type=None):
        self.store[self.name] = data


class MockBucket:
    def __init__(self):
        self.store = {}

    def blob(self, name):
        return MockBlob(self.store, name)


class MockStorageClient:
    def __init__(self):
        self._bucket = MockBucket()

    def bucket(self, name):
        return self._bucket

    def put_json(self, path, data):
        self._bucket.store[path] = json.dumps(data)

    def get_json(self, path):
        return json.loads(self._bucket.store[path])


def structured_summary(quick="Overview of the book.", chapters=None, **extra):
    summary = {
        "short_summary": "Short.",
        "quick_summary": quick,
        "key_ideas": [],
        "chapters": chapters or [],
        "actionable_insights": [],
        "quotes": [],
    }
    summary.update(extra)
    return summary
