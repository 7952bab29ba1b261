"""Transactional emails. Sending problems are logged and never fail a request."""
import logging

from django.conf import settings
from django.core.mail import send_mail

logger = logging.getLogger(__name__)


def send_notification(subject, message, recipient):
    if not recipient:
        logger.warning(f"Email '{subject}' not sent: no recipient")
        return False
    try:
        send_mail(
            subject=subject,
            message=message,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[recipient],
            fail_silently=False,
        )
        logger.info(f"Email '{subject}' sent to {recipient}")
        return True
    except Exception as e:
        logger.warning(f"Email '{subject}' to {recipient} failed: {str(e)}")
        return False


def send_order_confirmation(order):
    lines = [
        f"Bonjour {order.shipping_address.get('first_name', '')},",
        "",
        f"Merci pour votre commande {order.order_number}.",
        "",
    ]
    for item in order.items.all():
        lines.append(f"- {item.name} x {item.quantity} : {item.line_total} {order.currency}")
    lines += [
        "",
        f"Sous-total : {order.subtotal} {order.currency}",
        f"Livraison : {order.shipping_cost} {order.currency}",
        f"Total : {order.total} {order.currency}",
        "",
        f"Suivre votre commande : {settings.FRONTEND_URL}/commande/{order.order_number}",
        "",
        f"L'équipe {settings.SHOP_NAME}",
    ]
    return send_notification(
        f"Confirmation de commande {order.order_number}",
        "\n".join(lines),
        order.contact_email,
    )


def send_admin_request_decision(admin_request):
    approved = admin_request.status == 'approved'
    if approved:
        subject = f"{settings.SHOP_NAME} : votre demande administrateur est acceptée"
        body = (
            f"Bonjour {admin_request.user.first_name},\n\n"
            "Votre demande d'accès administrateur a été acceptée. "
            f"Vous pouvez accéder au tableau de bord : {settings.FRONTEND_URL}/admin\n"
        )
    else:
        subject = f"{settings.SHOP_NAME} : votre demande administrateur est refusée"
        body = (
            f"Bonjour {admin_request.user.first_name},\n\n"
            "Votre demande d'accès administrateur n'a pas été acceptée.\n"
        )
    if admin_request.review_notes:
        body += f"\nCommentaire : {admin_request.review_notes}\n"
    return send_notification(subject, body, admin_request.user.email)
