import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('accounts', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Progress',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('path', models.JSONField(default=list)),
                ('place_index', models.PositiveIntegerField(default=0)),
                ('current_level_number', models.PositiveIntegerField(default=1)),
                ('start_time', models.DateTimeField(default=django.utils.timezone.now)),
                ('end_time', models.DateTimeField(blank=True, null=True)),
                ('completed', models.BooleanField(default=False)),
                ('player', models.OneToOneField(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='progress',
                    to='accounts.user',
                )),
            ],
            options={
                'ordering': ['start_time'],
            },
        ),
        migrations.CreateModel(
            name='Checkpoint',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('level', models.PositiveSmallIntegerField(verbose_name='Level')),
                ('place', models.CharField(max_length=200, verbose_name='Place')),
                ('scanned_at', models.DateTimeField()),
                ('time_taken_seconds', models.PositiveIntegerField(
                    help_text='Seconds since the previous checkpoint, or since the start',
                    verbose_name='Time taken (s)',
                )),
                ('progress', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='checkpoints',
                    to='game.progress',
                )),
            ],
            options={
                'ordering': ['scanned_at', 'id'],
            },
        ),
    ]
