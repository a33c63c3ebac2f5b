from django.db import migrations


def create_walk_in_client(apps, schema_editor):
    Client = apps.get_model("sales", "Client")
    if Client.objects.exists():
        return
    # First row on an empty table, so it receives id 1.
    Client.objects.create(
        name="Walk-in Customer",
        email="walkin@waterrefill.com",
        phone="000-0000",
        address="N/A",
        is_active=True,
    )


class Migration(migrations.Migration):
    dependencies = [
        ("sales", "0001_initial"),
    ]

    operations = [
        migrations.RunPython(create_walk_in_client, migrations.RunPython.noop),
    ]
