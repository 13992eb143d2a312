import threading
from unittest import skipIf
from unittest.mock import patch

from django.db import OperationalError, connection
from django.test import TestCase, TransactionTestCase, override_settings

from chats.exceptions import ChannelNotFound, InvalidInput, StoreUnavailable, ValidationError
from chats.models import Channel, Message
from chats.services import ChannelResolver, MessageStore


class ChannelResolverTest(TestCase):
    def setUp(self):
        self.resolver = ChannelResolver()

    def test_first_resolve_creates_channel(self):
        resolved = self.resolver.resolve('alice', 'bob')

        self.assertTrue(resolved.created)
        self.assertEqual(resolved.channel.participants, ('alice', 'bob'))
        self.assertEqual(Channel.objects.count(), 1)

    def test_second_resolve_returns_same_channel_without_creating(self):
        first = self.resolver.resolve('alice', 'bob')
        second = self.resolver.resolve('alice', 'bob')

        self.assertEqual(first.channel_id, second.channel_id)
        self.assertFalse(second.created)
        self.assertEqual(Channel.objects.count(), 1)

    def test_open_channel_is_order_independent(self):
        """Scenario: bob opening alice and alice opening bob share one channel"""
        from_bob = self.resolver.open_channel('bob', 'alice')
        from_alice = self.resolver.open_channel('alice', 'bob')

        self.assertEqual(from_bob.channel_id, from_alice.channel_id)
        self.assertTrue(from_bob.created)
        self.assertFalse(from_alice.created)
        self.assertEqual(Channel.objects.count(), 1)

    def test_open_channel_with_self_rejected(self):
        with self.assertRaises(InvalidInput):
            self.resolver.open_channel('alice', 'alice')
        self.assertEqual(Channel.objects.count(), 0)

    def test_padded_id_keeps_its_own_channel(self):
        resolved = self.resolver.open_channel(' bob', 'alice')

        self.assertEqual(resolved.channel.participants, (' bob', 'alice'))
        message = MessageStore().append(resolved.channel_id, ' bob', 'hi')
        self.assertEqual(message.sender_id, ' bob')

    def test_resolve_requires_normalized_pair(self):
        with self.assertRaises(InvalidInput):
            self.resolver.resolve('bob', 'alice')

    def test_lost_insert_race_returns_existing_channel(self):
        """
        Both clients miss on lookup; the second insert hits the unique
        constraint and must come back with the first client's channel.
        """
        winner = Channel.objects.create(participant_low='alice', participant_high='bob')
        real_lookup = ChannelResolver._lookup
        calls = []

        def stale_first_lookup(resolver, low, high):
            calls.append((low, high))
            if len(calls) == 1:
                return None
            return real_lookup(resolver, low, high)

        with patch.object(ChannelResolver, '_lookup', stale_first_lookup):
            resolved = self.resolver.resolve('alice', 'bob')

        self.assertEqual(resolved.channel_id, winner.pk)
        self.assertFalse(resolved.created)
        self.assertEqual(len(calls), 2)
        self.assertEqual(Channel.objects.filter(participant_low='alice', participant_high='bob').count(), 1)

    def test_lookup_failure_is_store_unavailable(self):
        with patch('chats.services.Channel.objects.filter', side_effect=OperationalError('db down')):
            with self.assertRaises(StoreUnavailable):
                self.resolver.resolve('alice', 'bob')

    def test_insert_failure_is_store_unavailable(self):
        with patch('chats.services.Channel.objects.create', side_effect=OperationalError('db down')):
            with self.assertRaises(StoreUnavailable):
                self.resolver.resolve('alice', 'bob')
        self.assertEqual(Channel.objects.count(), 0)


class MessageStoreTest(TestCase):
    def setUp(self):
        self.store = MessageStore()
        self.channel = ChannelResolver().resolve('alice', 'bob').channel

    def test_list_ordered_empty_for_new_channel(self):
        self.assertEqual(self.store.list_ordered(self.channel.pk), [])

    def test_append_then_list_in_order(self):
        self.store.append(self.channel.pk, 'alice', 'hi')
        self.store.append(self.channel.pk, 'bob', 'yo')

        messages = self.store.list_ordered(self.channel.pk)
        self.assertEqual([m.content for m in messages], ['hi', 'yo'])
        self.assertEqual([m.sender_id for m in messages], ['alice', 'bob'])

    def test_list_ordered_is_requeryable(self):
        self.store.append(self.channel.pk, 'alice', 'hi')
        first = self.store.list_ordered(self.channel.pk)
        self.store.append(self.channel.pk, 'bob', 'yo')
        second = self.store.list_ordered(self.channel.pk)

        self.assertEqual(len(first), 1)
        self.assertEqual(len(second), 2)

    def test_append_empty_content_rejected(self):
        for content in ['', '   ', '\n\t', None]:
            with self.subTest(content=content):
                with self.assertRaises(ValidationError):
                    self.store.append(self.channel.pk, 'alice', content)
        self.assertEqual(Message.objects.count(), 0)

    def test_validation_error_is_invalid_input(self):
        self.assertTrue(issubclass(ValidationError, InvalidInput))

    def test_append_strips_markup(self):
        message = self.store.append(self.channel.pk, 'alice', '<b>hello</b> there')
        self.assertEqual(message.content, 'hello there')

    def test_markup_only_content_rejected(self):
        with self.assertRaises(ValidationError):
            self.store.append(self.channel.pk, 'alice', '<i></i>')
        self.assertEqual(Message.objects.count(), 0)

    @override_settings(CHAT_MAX_MESSAGE_LENGTH=5)
    def test_too_long_content_rejected(self):
        with self.assertRaises(ValidationError):
            self.store.append(self.channel.pk, 'alice', 'way too long')

    def test_append_by_non_participant_rejected(self):
        with self.assertRaises(InvalidInput):
            self.store.append(self.channel.pk, 'mallory', 'hi')
        self.assertEqual(Message.objects.count(), 0)

    def test_append_to_unknown_channel(self):
        with self.assertRaises(ChannelNotFound):
            self.store.append(self.channel.pk + 100, 'alice', 'hi')

    def test_append_bumps_channel_updated_at(self):
        before = Channel.objects.get(pk=self.channel.pk).updated_at
        message = self.store.append(self.channel.pk, 'alice', 'hi')

        after = Channel.objects.get(pk=self.channel.pk).updated_at
        self.assertEqual(after, message.created_at)
        self.assertGreaterEqual(after, before)

    def test_insert_failure_is_store_unavailable(self):
        with patch('chats.services.Message.objects.create', side_effect=OperationalError('db down')):
            with self.assertRaises(StoreUnavailable):
                self.store.append(self.channel.pk, 'alice', 'hi')
        self.assertEqual(Message.objects.count(), 0)


@skipIf(connection.vendor == 'sqlite', "SQLite serializes writers, so the insert race cannot happen")
class ConcurrentResolveTest(TransactionTestCase):
    def test_concurrent_resolve_yields_one_channel(self):
        barrier = threading.Barrier(2)
        results = []
        errors = []

        def resolve():
            try:
                barrier.wait(timeout=5)
                results.append(ChannelResolver().resolve('alice', 'bob'))
            except Exception as e:
                errors.append(e)
            finally:
                connection.close()

        threads = [threading.Thread(target=resolve) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        self.assertEqual(errors, [])
        self.assertEqual(len(results), 2)
        self.assertEqual(results[0].channel_id, results[1].channel_id)
        self.assertEqual(sum(r.created for r in results), 1)
        self.assertEqual(Channel.objects.count(), 1)
