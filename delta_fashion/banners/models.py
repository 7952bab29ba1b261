from django.core.validators import RegexValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone

from delta_fashion.core.storage import get_image_url

hex_color_validator = RegexValidator(
    regex=r'^#[0-9A-Fa-f]{6}$',
    message='Color must be a hexadecimal value such as #f8f9fa.',
)


class BannerQuerySet(models.QuerySet):
    def live(self, now=None):
        """Active banners whose display window contains `now`"""
        now = now or timezone.now()
        return self.filter(
            Q(end_date__isnull=True) | Q(end_date__gte=now),
            is_active=True,
            start_date__lte=now,
        ).order_by('order', '-created_at')


class Banner(models.Model):
    """Homepage carousel slide"""
    POSITION_CHOICES = [
        ('left', 'Left'),
        ('center', 'Center'),
        ('right', 'Right'),
    ]

    title = models.CharField(max_length=100)
    subtitle = models.CharField(max_length=200, blank=True, default='')
    description = models.TextField(max_length=500, blank=True, default='')
    image = models.CharField(max_length=500)
    button_text = models.CharField(max_length=50, default='Voir les offres')
    button_link = models.CharField(max_length=200, default='/boutique')
    order = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)
    start_date = models.DateTimeField(default=timezone.now)
    end_date = models.DateTimeField(null=True, blank=True)
    background_color = models.CharField(max_length=7, default='#f8f9fa', validators=[hex_color_validator])
    text_color = models.CharField(max_length=7, default='#ffffff', validators=[hex_color_validator])
    position = models.CharField(max_length=10, choices=POSITION_CHOICES, default='center')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = BannerQuerySet.as_manager()

    class Meta:
        db_table = 'banners'
        ordering = ['order', '-created_at']
        indexes = [
            models.Index(fields=['is_active', 'order'], name='banner_active_order_idx'),
        ]

    def __str__(self):
        return self.title

    @property
    def image_url(self):
        return get_image_url(self.image)

    @property
    def is_live(self):
        now = timezone.now()
        if not self.is_active or self.start_date > now:
            return False
        return self.end_date is None or self.end_date >= now
