from typing import List
from pydantic_settings import BaseSettings


class ReminderSettings(BaseSettings):
    # Reminder content
    NOTIFICATION_TITLE: str = "Medicine Reminder"
    NOTIFICATION_SOUND: str = "default"

    # Android-style channel, registered after permission is granted
    CHANNEL_ID: str = "default"
    CHANNEL_NAME: str = "Medicine Reminders"
    CHANNEL_IMPORTANCE: str = "max"
    CHANNEL_VIBRATION_PATTERN: List[int] = [0, 250, 250, 250]
    CHANNEL_LIGHT_COLOR: str = "#FF231F7C"

    # Foreground presentation policy
    SHOW_ALERT: bool = True
    PLAY_SOUND: bool = True
    SET_BADGE: bool = False

    PERMISSION_DENIED_MESSAGE: str = "Failed to get permission for medicine reminder notifications!"

    # Metrics
    METRICS_ENABLED: bool = True

    class Config:
        env_prefix = "REMINDER_"
        env_file = ".env"
        extra = "ignore"


settings = ReminderSettings()
