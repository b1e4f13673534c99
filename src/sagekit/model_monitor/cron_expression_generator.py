"""Schedule expressions for monitoring schedules."""


class CronExpressionGenerator:
    """Generates cron expressions understood by monitoring schedules."""

    @staticmethod
    def hourly() -> str:
        """Every hour, on the hour."""
        return "cron(0 * ? * * *)"

    @staticmethod
    def daily(hour: int = 0) -> str:
        """Every day at the given UTC hour."""
        return f"cron(0 {hour} ? * * *)"

    @staticmethod
    def daily_every_x_hours(hour_interval: int, starting_hour: int = 0) -> str:
        """Every hour_interval hours, starting at the given UTC hour."""
        return f"cron(0 {starting_hour}/{hour_interval} ? * * *)"
