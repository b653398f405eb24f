from django.db.models.signals import post_migrate
from django.dispatch import receiver

from . import services


# ----------------- Seed the first admin account -----------------
@receiver(post_migrate)
def create_default_admin(sender, **kwargs):
    if sender.name == 'bloodbank':
        services.seed_default_admin()
