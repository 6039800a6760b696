from django.db import migrations

import encrypted_fields.fields


class Migration(migrations.Migration):
    dependencies = [
        ("calendar_integration", "0001_initial"),
    ]

    operations = [
        migrations.AlterField(
            model_name="calendarintegration",
            name="refresh_token",
            field=encrypted_fields.fields.EncryptedCharField(
                blank=True, max_length=512, null=True, verbose_name="refresh token"
            ),
        ),
    ]
