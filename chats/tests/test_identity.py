import uuid

from django.test import SimpleTestCase

from chats.exceptions import InvalidInput
from chats.identity import normalize


class NormalizeTest(SimpleTestCase):
    def test_orders_pair(self):
        self.assertEqual(normalize('bob', 'alice'), ('alice', 'bob'))
        self.assertEqual(normalize('alice', 'bob'), ('alice', 'bob'))

    def test_order_independent(self):
        pairs = [('u1', 'u2'), ('zed', 'amy'), ('10', '9'), ('a', 'ab')]
        for a, b in pairs:
            with self.subTest(a=a, b=b):
                self.assertEqual(normalize(a, b), normalize(b, a))

    def test_same_user_rejected(self):
        with self.assertRaises(InvalidInput):
            normalize('alice', 'alice')

    def test_empty_or_missing_rejected(self):
        for a, b in [('', 'bob'), ('alice', ''), (None, 'bob'), ('alice', None), ('   ', 'bob')]:
            with self.subTest(a=a, b=b):
                with self.assertRaises(InvalidInput):
                    normalize(a, b)

    def test_uuid_ids_compare_as_strings(self):
        first, second = uuid.uuid4(), uuid.uuid4()
        low, high = normalize(first, second)
        self.assertLess(low, high)
        self.assertEqual({low, high}, {str(first), str(second)})

    def test_ids_are_not_rewritten(self):
        self.assertEqual(normalize('alice', 'alice '), ('alice', 'alice '))
        self.assertEqual(normalize(' bob', 'alice'), (' bob', 'alice'))
