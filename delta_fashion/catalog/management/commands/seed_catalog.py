"""
Management command to seed the catalogue with demo categories, products and the default banner

Seeded images are remote URLs, nothing is uploaded.

Usage:
    python manage.py seed_catalog [--clear]
"""
from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction

from delta_fashion.banners.models import Banner
from delta_fashion.catalog.models import Category, Product
from delta_fashion.core.cache_signals import suspend_cache_signals

CATEGORIES = [
    {'name': 'Hommes', 'description': 'Mode masculine tendance', 'icon': 'male', 'order': 1},
    {'name': 'Femmes', 'description': 'Mode féminine élégante', 'icon': 'female', 'order': 2},
    {'name': 'Enfants', 'description': 'Mode pour enfants', 'icon': 'child', 'order': 3},
    {'name': 'Accessoires', 'description': 'Accessoires de mode', 'icon': 'accessory', 'order': 4},
]

SUBCATEGORIES = [
    {'name': 'T-shirts Homme', 'description': 'T-shirts pour hommes', 'parent': 'Hommes', 'order': 1},
    {'name': 'Pantalons Homme', 'description': 'Pantalons pour hommes', 'parent': 'Hommes', 'order': 2},
    {'name': 'Robes', 'description': 'Robes élégantes', 'parent': 'Femmes', 'order': 1},
    {'name': 'Tops Femme', 'description': 'Tops et hauts pour femmes', 'parent': 'Femmes', 'order': 2},
]


def variants_for(sizes, color, stock):
    return [{'size': size, 'color': color, 'stock': stock} for size in sizes]


PRODUCTS = [
    {
        'name': 'T-shirt Classique Blanc',
        'description': 'T-shirt en coton 100% de qualité premium. Coupe classique, confortable pour un usage quotidien.',
        'short_description': 'T-shirt blanc classique en coton',
        'price': Decimal('29.99'),
        'original_price': Decimal('39.99'),
        'discount': 25,
        'category': 'Hommes',
        'sub_category': 'T-shirts Homme',
        'sku': 'TS-WHT-001',
        'images': ['https://via.placeholder.com/400x400/ffffff/000000?text=T-shirt+Blanc'],
        'variants': variants_for(['S', 'M', 'L', 'XL'], 'Blanc', 10),
        'colors': [{'name': 'Blanc', 'code': '#FFFFFF'}],
        'is_featured': True,
        'is_new': True,
        'is_on_sale': True,
        'tags': ['basique', 'coton', 'confort'],
    },
    {
        'name': 'Jean Slim Bleu',
        'description': 'Jean slim fit en denim de qualité. Coupe moderne et ajustée, parfait pour un look décontracté chic.',
        'short_description': 'Jean slim bleu délavé',
        'price': Decimal('79.99'),
        'category': 'Hommes',
        'sub_category': 'Pantalons Homme',
        'sku': 'JN-BLU-001',
        'images': ['https://via.placeholder.com/400x400/4169E1/ffffff?text=Jean+Bleu'],
        'variants': variants_for(['S', 'M', 'L', 'XL'], 'Bleu', 9),
        'colors': [{'name': 'Bleu', 'code': '#4169E1'}],
        'is_featured': True,
        'is_new': False,
        'tags': ['jean', 'denim', 'slim'],
    },
    {
        'name': 'Robe Élégante Noire',
        'description': 'Robe noire élégante parfaite pour les occasions spéciales. Tissu fluide et coupe flatteuse.',
        'short_description': 'Robe noire élégante',
        'price': Decimal('89.99'),
        'original_price': Decimal('119.99'),
        'discount': 25,
        'category': 'Femmes',
        'sub_category': 'Robes',
        'sku': 'RB-BLK-001',
        'images': ['https://via.placeholder.com/400x400/000000/ffffff?text=Robe+Noire'],
        'variants': variants_for(['XS', 'S', 'M', 'L'], 'Noir', 7),
        'colors': [{'name': 'Noir', 'code': '#000000'}],
        'is_featured': True,
        'is_new': True,
        'is_on_sale': True,
        'tags': ['robe', 'élégant', 'soirée'],
    },
    {
        'name': 'Top Fleuri Rose',
        'description': "Top léger avec motif floral. Parfait pour l'été, tissu respirant et coupe féminine.",
        'short_description': "Top fleuri rose d'été",
        'price': Decimal('34.99'),
        'category': 'Femmes',
        'sub_category': 'Tops Femme',
        'sku': 'TP-FLR-001',
        'images': ['https://via.placeholder.com/400x400/FFB6C1/ffffff?text=Top+Fleuri'],
        'variants': variants_for(['XS', 'S', 'M', 'L'], 'Rose', 7),
        'colors': [{'name': 'Rose', 'code': '#FFB6C1'}],
        'is_new': True,
        'tags': ['top', 'fleuri', 'été'],
    },
    {
        'name': 'Sac à Main Cuir Marron',
        'description': 'Sac à main en cuir véritable de qualité premium. Design intemporel et fonctionnel.',
        'short_description': 'Sac cuir marron premium',
        'price': Decimal('149.99'),
        'category': 'Accessoires',
        'sku': 'SAC-MAR-001',
        'images': ['https://via.placeholder.com/400x400/8B4513/ffffff?text=Sac+Cuir'],
        'variants': variants_for(['M'], 'Marron', 15),
        'colors': [{'name': 'Marron', 'code': '#8B4513'}],
        'is_featured': True,
        'is_new': False,
        'tags': ['sac', 'cuir', 'accessoire'],
    },
]

DEFAULT_BANNER = {
    'title': 'Bienvenue chez Delta Fashion',
    'subtitle': 'Votre style, notre passion',
    'description': 'Découvrez notre collection exclusive de vêtements tendance',
    'image': 'https://images.unsplash.com/photo-1441986300917-64674bd600d8?auto=format&fit=crop&w=1200&q=80',
    'button_text': 'Découvrir la boutique',
    'button_link': '/boutique',
    'order': 0,
    'background_color': '#1f2937',
    'text_color': '#ffffff',
    'position': 'center',
}


class Command(BaseCommand):
    help = "Seeds demo categories, products and the default banner"

    def add_arguments(self, parser):
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Delete existing products, categories and banners before seeding',
        )

    def handle(self, *args, **options):
        self.stdout.write(self.style.SUCCESS("=" * 60))
        self.stdout.write(self.style.SUCCESS("SEEDING CATALOGUE"))
        self.stdout.write(self.style.SUCCESS("=" * 60))

        with suspend_cache_signals(), transaction.atomic():
            if options['clear']:
                self.stdout.write(self.style.WARNING("Clearing products, categories and banners..."))
                Product.objects.all().delete()
                Category.objects.filter(parent__isnull=False).delete()
                Category.objects.all().delete()
                Banner.objects.all().delete()

            categories = {}
            for data in CATEGORIES:
                categories[data['name']], created = Category.objects.get_or_create(
                    name=data['name'], defaults={key: value for key, value in data.items() if key != 'name'}
                )
                self.report('Category', data['name'], created)

            for data in SUBCATEGORIES:
                defaults = {
                    'description': data['description'],
                    'order': data['order'],
                    'parent': categories[data['parent']],
                }
                categories[data['name']], created = Category.objects.get_or_create(name=data['name'], defaults=defaults)
                self.report('Subcategory', data['name'], created)

            for data in PRODUCTS:
                data = dict(data)
                if Product.objects.filter(sku=data['sku']).exists():
                    self.report('Product', data['name'], False)
                    continue
                variants = data.pop('variants')
                data['category'] = categories[data['category']]
                if data.get('sub_category'):
                    data['sub_category'] = categories[data['sub_category']]
                data['sizes'] = [variant['size'] for variant in variants]
                data['brand'] = 'Delta Fashion'
                product = Product.objects.create(**data)
                product.replace_variants(variants)
                self.report('Product', product.name, True)

            if Banner.objects.exists():
                self.stdout.write(f"  Banner: {Banner.objects.count()} already present, skipped")
            else:
                Banner.objects.create(**DEFAULT_BANNER)
                self.report('Banner', DEFAULT_BANNER['title'], True)

        self.stdout.write(self.style.SUCCESS("Catalogue seeded."))

    def report(self, kind, name, created):
        if created:
            self.stdout.write(self.style.SUCCESS(f"  {kind} created: {name}"))
        else:
            self.stdout.write(f"  {kind} exists, skipped: {name}")
