"""Tests for filtering thinking process from LLM responses."""

import unittest

from diffscribe.llm.ollama_client import strip_thinking_tags


class TestThinkingFilter(unittest.TestCase):
    def test_filter_simple_thinking_tags(self):
        result = strip_thinking_tags("<think>Let me analyze this diff...</think>- Adds login")
        self.assertEqual(result, "- Adds login")

    def test_filter_multiline_and_case(self):
        text = "<THINKING>First\nthen\n</THINKING>\n\n- Feature\n  - Detail"
        self.assertEqual(strip_thinking_tags(text), "- Feature\n  - Detail")

    def test_filter_multiple_tag_kinds(self):
        text = "<thought>a</thought>- One\n<reasoning>b</reasoning>- Two"
        self.assertEqual(strip_thinking_tags(text), "- One\n- Two")

    def test_text_without_tags_is_trimmed_only(self):
        self.assertEqual(strip_thinking_tags("  - Plain  \n"), "- Plain")


if __name__ == "__main__":
    unittest.main()
