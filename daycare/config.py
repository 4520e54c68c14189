from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', extra='ignore')

    app_name: str = 'Daycare Subscriptions'
    app_env: str = 'local'
    app_timezone: str = 'America/Lima'
    database_url: str = 'sqlite:///./daycare.db'
    app_base_url: str = 'http://127.0.0.1:8000'
    center_name: str = 'Daycare Center'

    # Pricing
    included_sessions: int = 8
    min_sessions: int = 4
    max_sessions: int = 20
    currency_symbol: str = 'S/'

    # Provisioning
    invoice_due_days: int = 7
    default_session_time: str = '09:00'
    subscription_code_prefix: str = 'SUBS'
    invoice_number_prefix: str = 'INV'

    # Notifications
    enable_email_notifications: bool = False
    smtp_host: str = 'localhost'
    smtp_port: int = 587
    smtp_username: str = ''
    smtp_password: str = ''
    smtp_use_tls: bool = True
    smtp_timeout_seconds: int = 10
    email_from: str = 'no-reply@daycare.local'

    db_slow_query_ms: int = 100
    metrics_slow_ms: int = 200


settings = Settings()
