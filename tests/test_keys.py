"""
Tests for content-addressed cache keys.

Tests cover:
- Determinism within a process and across processes
- Distinct pairs give distinct keys (incl. concatenation collisions)
- Key shape validation
"""
import random
import string
import subprocess
import sys

from tts_proxy.proxy.keys import content_key, is_valid_key


class TestContentKey:

    def test_deterministic(self):
        assert content_key("v1", "hello") == content_key("v1", "hello")

    def test_stable_across_processes(self):
        """A fresh interpreter derives the same key."""
        code = "from tts_proxy.proxy.keys import content_key; print(content_key('v1', 'hello'))"
        out = subprocess.run(
            [sys.executable, "-c", code],
            capture_output=True,
            text=True,
            check=True,
        ).stdout.strip()
        assert out == content_key("v1", "hello")

    def test_shape(self):
        key = content_key("pNInz6obpgDQGcFmaJgB", "Hello there")
        assert len(key) == 64
        assert is_valid_key(key)

    def test_concatenation_collision_resisted(self):
        assert content_key("ab", "c") != content_key("a", "bc")
        assert content_key("a|b", "c") != content_key("a", "b|c")
        assert content_key("", "abc") != content_key("abc", "")

    def test_field_order_matters(self):
        assert content_key("x", "y") != content_key("y", "x")

    def test_unicode_text(self):
        assert content_key("v1", "Merhaba dünya") != content_key("v1", "Merhaba dunya")

    def test_many_sampled_pairs_are_distinct(self):
        rng = random.Random(1234)
        alphabet = string.ascii_letters + string.digits + "|:/ "
        pairs = set()
        while len(pairs) < 2000:
            voice = "".join(rng.choice(alphabet) for _ in range(rng.randint(0, 6)))
            text = "".join(rng.choice(alphabet) for _ in range(rng.randint(0, 6)))
            pairs.add((voice, text))

        keys = {content_key(v, t) for v, t in pairs}
        assert len(keys) == len(pairs)

    def test_every_split_of_a_string_is_distinct(self):
        s = "abcdefgh"
        keys = {content_key(s[:i], s[i:]) for i in range(len(s) + 1)}
        assert len(keys) == len(s) + 1


class TestIsValidKey:

    def test_rejects_non_hex(self):
        assert not is_valid_key("g" * 64)

    def test_rejects_wrong_length(self):
        assert not is_valid_key("a" * 63)
        assert not is_valid_key("a" * 65)

    def test_rejects_path_traversal(self):
        assert not is_valid_key("../" + "a" * 61)

    def test_rejects_uppercase(self):
        assert not is_valid_key("A" * 64)

    def test_rejects_trailing_newline(self):
        assert not is_valid_key("a" * 64 + "\n")

    def test_rejects_non_string(self):
        assert not is_valid_key(None)
