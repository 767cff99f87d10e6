"""Tests for feature analysis and consolidation."""

import unittest
from unittest.mock import Mock

from diffscribe.llm.feature_analyzer import (
    DIFF_GROUP_SIZE,
    NOTHING_TO_SUMMARIZE,
    FeatureAnalyzer,
)


class FakeModel:
    """Deterministic stand-in for the model client."""

    def __init__(self):
        self.queries = []
        self.chats = []

    def query(self, prompt, max_tokens=2048):
        self.queries.append((prompt, max_tokens))
        return f"  - feature {len(self.queries)}  "

    def chat(self, messages, max_tokens=2048):
        self.chats.append(messages)
        return f"summary {len(self.chats)}\n"


def file_diff(name, body_size):
    return f"diff --git a/{name} b/{name}\n+" + "x" * body_size


class TestAnalyzeDiff(unittest.TestCase):
    def test_one_description_per_group(self) -> None:
        model = FakeModel()
        diff = "\n".join(
            [file_diff("a.py", 100), file_diff("b.py", 100), file_diff("big.py", DIFF_GROUP_SIZE + 10)]
        )
        features = FeatureAnalyzer(model).analyze_diff(diff)

        self.assertEqual(features, ["- feature 1", "- feature 2"])
        first_prompt, budget = model.queries[0]
        self.assertIn("a/a.py b/a.py", first_prompt)
        self.assertIn("a/b.py b/b.py", first_prompt)
        self.assertNotIn("big.py", first_prompt)
        self.assertIn("big.py", model.queries[1][0])
        self.assertEqual(budget, 2048)

    def test_prompt_rules_and_language(self) -> None:
        model = FakeModel()
        FeatureAnalyzer(model, language="German").analyze_diff(file_diff("a.py", 10))
        prompt = model.queries[0][0]
        self.assertIn("You are a business analyst", prompt)
        self.assertIn("Respond in German.", prompt)
        self.assertIn("Do NOT review, fix, refactor, or provide code examples.", prompt)

    def test_diff_without_headers_calls_nothing(self) -> None:
        model = FakeModel()
        self.assertEqual(FeatureAnalyzer(model).analyze_diff("just text\n+line"), [])
        self.assertEqual(model.queries, [])

    def test_model_errors_propagate(self) -> None:
        model = Mock()
        model.query.side_effect = RuntimeError("down")
        with self.assertRaises(RuntimeError):
            FeatureAnalyzer(model).analyze_diff(file_diff("a.py", 10))


class TestSummarizeFeatures(unittest.TestCase):
    def test_nothing_to_summarize(self) -> None:
        model = Mock()
        analyzer = FeatureAnalyzer(model)
        self.assertEqual(analyzer.summarize_features([]), NOTHING_TO_SUMMARIZE)
        self.assertEqual(analyzer.summarize_features(["", "  "]), NOTHING_TO_SUMMARIZE)
        model.chat.assert_not_called()
        model.query.assert_not_called()

    def test_single_chunk(self) -> None:
        model = FakeModel()
        result = FeatureAnalyzer(model).summarize_features(["- a", "", "- b"])
        self.assertEqual(result, "summary 1")
        self.assertEqual(len(model.chats), 1)
        messages = model.chats[0]
        self.assertEqual([m["role"] for m in messages], ["system", "user"])
        self.assertIn("Here is the first part of the document", messages[1]["content"])
        self.assertIn("- a\n- b", messages[1]["content"])

    def test_fold_carries_running_summary(self) -> None:
        model = FakeModel()
        features = ["\n".join(f"- line {i} " + "y" * 90 for i in range(60))]
        result = FeatureAnalyzer(model).summarize_features(features)

        self.assertGreater(len(model.chats), 1)
        self.assertEqual(result, f"summary {len(model.chats)}")
        for step, messages in enumerate(model.chats):
            # system message plus the current user turn only
            self.assertEqual([m["role"] for m in messages], ["system", "user"])
            self.assertLessEqual(len(messages[1]["content"]), 4000 + 500 + 100)
            if step:
                self.assertIn("Here is another part of the document", messages[1]["content"])
                self.assertIn(f"summary {step}", messages[1]["content"])

    def test_chunks_keep_chronological_order(self) -> None:
        model = FakeModel()
        features = [f"- first {'a' * 3000}", f"- second {'b' * 3000}"]
        FeatureAnalyzer(model).summarize_features(features)
        self.assertIn("- first", model.chats[0][1]["content"])
        self.assertIn("- second", model.chats[1][1]["content"])


class TestUpdateDoc(unittest.TestCase):
    def test_no_features_returns_document_unchanged(self) -> None:
        model = Mock()
        self.assertEqual(FeatureAnalyzer(model).update_doc("# Doc\n", []), "# Doc\n")
        model.chat.assert_not_called()

    def test_first_turn_includes_existing_document(self) -> None:
        model = FakeModel()
        result = FeatureAnalyzer(model).update_doc("# Existing Doc", ["- new thing"])
        self.assertEqual(result, "summary 1")
        system, user = model.chats[0]
        self.assertIn("Preserve the existing structure", system["content"])
        self.assertIn("# Existing Doc", user["content"])
        self.assertIn("- new thing", user["content"])

    def test_later_turns_pass_current_document(self) -> None:
        model = FakeModel()
        features = [f"- first {'a' * 3000}", f"- second {'b' * 3000}"]
        FeatureAnalyzer(model).update_doc("# Existing Doc", features)
        second_turn = model.chats[1][1]["content"]
        self.assertIn("summary 1", second_turn)
        self.assertNotIn("# Existing Doc", second_turn)


if __name__ == "__main__":
    unittest.main()
