import json

from clipfeed.utils.json_repair import strip_json_wrappers, try_repair_truncated_json


class TestStripJsonWrappers:
    def test_fenced_block_inside_prose(self):
        text = 'Here is the analysis:\n```json\n{"techStack": ["Go"]}\n```\nHope it helps.'

        assert strip_json_wrappers(text) == '{"techStack": ["Go"]}'

    def test_unclosed_leading_fence(self):
        assert strip_json_wrappers('```json\n{"a": 1}') == '{"a": 1}'

    def test_plain_payload_untouched(self):
        assert strip_json_wrappers('  {"a": 1}  ') == '{"a": 1}'


class TestTryRepairTruncatedJson:
    def test_valid_json_returned_as_is(self):
        payload = '{"a": [1, 2]}'

        assert try_repair_truncated_json(payload) == payload

    def test_closes_open_string_and_structures(self):
        repaired = try_repair_truncated_json('{"overview": "demo", "techStack": ["Go", "Post')

        assert json.loads(repaired) == {"overview": "demo", "techStack": ["Go", "Post"]}

    def test_truncates_to_last_complete_value(self):
        repaired = try_repair_truncated_json('{"a": [1, 2], "b": tru')

        assert json.loads(repaired) == {"a": [1, 2]}

    def test_non_object_is_not_repaired(self):
        assert try_repair_truncated_json("The app uses Flutter.") is None
