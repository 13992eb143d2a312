import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Channel',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('participant_low', models.CharField(db_index=True, max_length=100)),
                ('participant_high', models.CharField(db_index=True, max_length=100)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'chats_channel',
                'constraints': [
                    models.UniqueConstraint(fields=('participant_low', 'participant_high'), name='unique_channel_participants'),
                    models.CheckConstraint(condition=models.Q(('participant_low__lt', models.F('participant_high'))), name='channel_participants_ordered'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Message',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('sender_id', models.CharField(max_length=100)),
                ('content', models.TextField()),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('channel', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='messages', to='chats.channel')),
            ],
            options={
                'db_table': 'chats_message',
                'ordering': ['created_at', 'id'],
            },
        ),
    ]
