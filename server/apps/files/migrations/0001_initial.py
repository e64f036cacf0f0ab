import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Folder',
            fields=[
                ('id', models.BigAutoField(db_column='folder_id', primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=255)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('parent', models.ForeignKey(blank=True, db_column='parent_folder_id', null=True, on_delete=django.db.models.deletion.DO_NOTHING, related_name='children', to='files.folder')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='folders', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Folder',
                'verbose_name_plural': 'Folders',
                'db_table': 'folders',
                'ordering': ['name'],
                'indexes': [models.Index(fields=['user', 'parent'], name='folders_user_parent_idx')],
                'constraints': [
                    models.UniqueConstraint(fields=('user', 'parent', 'name'), name='folders_user_parent_name_unique'),
                    models.UniqueConstraint(condition=models.Q(('parent__isnull', True)), fields=('user', 'name'), name='folders_user_root_name_unique'),
                ],
            },
        ),
        migrations.CreateModel(
            name='File',
            fields=[
                ('id', models.BigAutoField(db_column='file_id', primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=255)),
                ('blob', models.FileField(db_column='file_path', help_text='Path in storage: user_{user_id}/abc/def/{blob_id}.ext', max_length=512, upload_to='')),
                ('mime_type', models.CharField(help_text='Content type declared at upload', max_length=255)),
                ('size_bytes', models.BigIntegerField(db_column='size', help_text='File size in bytes')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('folder', models.ForeignKey(blank=True, db_column='folder_id', null=True, on_delete=django.db.models.deletion.DO_NOTHING, related_name='files', to='files.folder')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='files', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'File',
                'verbose_name_plural': 'Files',
                'db_table': 'files',
                'ordering': ['name'],
                'indexes': [models.Index(fields=['user', 'folder'], name='files_user_folder_idx')],
                'constraints': [
                    models.UniqueConstraint(fields=('user', 'folder', 'name'), name='files_user_folder_name_unique'),
                    models.UniqueConstraint(condition=models.Q(('folder__isnull', True)), fields=('user', 'name'), name='files_user_root_name_unique'),
                ],
            },
        ),
    ]
