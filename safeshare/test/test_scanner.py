import unittest

from safeshare.protocol.scanner import find, NOT_FOUND


class TestBoundaryScanner(unittest.TestCase):
    def test_finds_needle_at_position(self):
        haystack = b'abcdefXYZghi'
        self.assertEqual(find(haystack, b'XYZ'), 6)

    def test_not_found(self):
        self.assertEqual(find(b'abcdef', b'xyz'), NOT_FOUND)

    def test_needle_longer_than_haystack(self):
        self.assertEqual(find(b'ab', b'abc'), NOT_FOUND)

    def test_needle_spanning_nul_bytes(self):
        haystack = b'\x00\x01\x02\x00\x00\xff\x00--end'
        self.assertEqual(find(haystack, b'\x00\x00\xff\x00'), 3)

    def test_first_match_at_or_after_start(self):
        haystack = b'--a--a--a'
        self.assertEqual(find(haystack, b'--a'), 0)
        self.assertEqual(find(haystack, b'--a', 1), 3)
        self.assertEqual(find(haystack, b'--a', 3), 3)
        self.assertEqual(find(haystack, b'--a', 7), NOT_FOUND)

    def test_start_past_end(self):
        self.assertEqual(find(b'abc', b'c', 10), NOT_FOUND)

    def test_empty_needle(self):
        self.assertEqual(find(b'abc', b''), NOT_FOUND)

    def test_negative_start_is_clamped(self):
        self.assertEqual(find(b'abc', b'a', -5), 0)


if __name__ == '__main__':
    unittest.main()
