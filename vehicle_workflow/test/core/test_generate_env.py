"""
Tests for the .env generator
"""
from dotenv import dotenv_values

from generate_env import EnvGenerator


def test_generated_env_is_loadable(tmp_path):
    env_file = tmp_path / '.env'
    assert EnvGenerator(env_file=env_file).generate(force=True)

    values = dotenv_values(env_file)
    assert len(values['SECRET_KEY']) == 128
    assert values['WORKFLOW_NOTIFY_MAX_ATTEMPTS'] == '3'
    assert values['WORKFLOW_NOTIFY_RETRY_DELAY'] == '0.5'
    assert values['WORKFLOW_NOTIFY_FAILURE_HISTORY'] == '100'
    assert 'DATABASE_URL' not in values
    assert oct(env_file.stat().st_mode & 0o777) == '0o600'


def test_dev_mode_uses_fixed_key(tmp_path):
    env_file = tmp_path / '.env'
    EnvGenerator(dev_mode=True, env_file=env_file).generate(force=True)
    values = dotenv_values(env_file)
    assert values['SECRET_KEY'] == 'dev-secret-key-DO-NOT-USE-IN-PRODUCTION'
    assert values['VEHICLE_WORKFLOW_CONSOLE_LEVEL'] == 'DEBUG'
