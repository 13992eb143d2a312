from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.permissions import BasePermission

from users.models import Profile

UPGRADE_URL = '/payment'


class PaymentRequired(APIException):
    status_code = status.HTTP_402_PAYMENT_REQUIRED
    default_detail = 'Chat is only available to members with an active plan.'
    default_code = 'payment_required'


def is_paid_member(user_id):
    """A user without a profile has no plan."""
    return Profile.objects.filter(user_id=user_id, is_paid=True).exists()


class IsPaidMember(BasePermission):
    """Chat is a paid feature: the caller must have a profile with an active plan."""

    def has_permission(self, request, view):
        user_id = getattr(request, 'user_id', None)
        if not user_id:
            return False

        if not is_paid_member(user_id):
            raise PaymentRequired({
                'error': PaymentRequired.default_detail,
                'upgrade_url': UPGRADE_URL,
            })
        return True
