import django.core.validators
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Banner',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=100)),
                ('subtitle', models.CharField(blank=True, default='', max_length=200)),
                ('description', models.TextField(blank=True, default='', max_length=500)),
                ('image', models.CharField(max_length=500)),
                ('button_text', models.CharField(default='Voir les offres', max_length=50)),
                ('button_link', models.CharField(default='/boutique', max_length=200)),
                ('order', models.PositiveIntegerField(default=0)),
                ('is_active', models.BooleanField(default=True)),
                ('start_date', models.DateTimeField(default=django.utils.timezone.now)),
                ('end_date', models.DateTimeField(blank=True, null=True)),
                ('background_color', models.CharField(default='#f8f9fa', max_length=7, validators=[django.core.validators.RegexValidator(message='Color must be a hexadecimal value such as #f8f9fa.', regex='^#[0-9A-Fa-f]{6}$')])),
                ('text_color', models.CharField(default='#ffffff', max_length=7, validators=[django.core.validators.RegexValidator(message='Color must be a hexadecimal value such as #f8f9fa.', regex='^#[0-9A-Fa-f]{6}$')])),
                ('position', models.CharField(choices=[('left', 'Left'), ('center', 'Center'), ('right', 'Right')], default='center', max_length=10)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'banners',
                'ordering': ['order', '-created_at'],
                'indexes': [
                    models.Index(fields=['is_active', 'order'], name='banner_active_order_idx'),
                ],
            },
        ),
    ]
