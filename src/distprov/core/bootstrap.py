"""Create and configure the primary login inside a guest.

Every step tolerates work that is already done, so re-running on a configured
guest is safe. Only user creation and the password are required; the rest
degrade to warnings.
"""

from distprov.core.config import UserConfig
from distprov.core.context import ProvisionContext
from distprov.core.errors import ErrorKind, ProvisionError
from distprov.core.results import StageReport
from distprov.ops.subprocess import describe_failure


def _user_exists(ctx: ProvisionContext, guest_name: str, username: str) -> bool:
    result = ctx.wsl.run_in_guest(guest_name, ["id", "-u", username], read_only=True)
    return result.success


def _warn(ctx: ProvisionContext, report: StageReport, message: str) -> None:
    ctx.logger.warning(message)
    report.warnings.append(message)


def configure_user(
    ctx: ProvisionContext,
    guest_name: str,
    user_config: UserConfig,
    report: StageReport | None = None,
) -> bool:
    """Create the primary user, set its password and apply optional settings.

    Returns:
        True when the user exists and its password is set
    """
    report = report if report is not None else StageReport()
    username = user_config.username

    create = ["useradd", "--create-home", "--shell", user_config.shell]
    if user_config.groups:
        create += ["--groups", ",".join(user_config.groups)]
    result = ctx.wsl.run_in_guest(guest_name, [*create, username])
    if result.success:
        ctx.logger.info("Created user '%s'", username)
    elif _user_exists(ctx, guest_name, username):
        ctx.logger.info("User '%s' already exists", username)
    else:
        detail = describe_failure(result, f"create user '{username}'")
        report.error = ProvisionError(ErrorKind.USER_CREATION_FAILED, detail)
        ctx.logger.error(detail)
        return False

    if user_config.password is None:
        detail = f"No password configured for '{username}'"
        report.error = ProvisionError(ErrorKind.PASSWORD_SET_FAILED, detail)
        ctx.logger.error(detail)
        return False

    result = ctx.wsl.run_in_guest(
        guest_name,
        ["chpasswd"],
        input=f"{username}:{user_config.password.get_secret_value()}\n",
    )
    if not result.success:
        detail = describe_failure(result, f"set password for '{username}'")
        report.error = ProvisionError(ErrorKind.PASSWORD_SET_FAILED, detail)
        ctx.logger.error(detail)
        return False
    ctx.logger.info("Password set for '%s'", username)

    if user_config.force_password_change:
        result = ctx.wsl.run_in_guest(guest_name, ["chage", "--lastday", "0", username])
        if result.success:
            ctx.logger.info("Password change required at next login")
        else:
            _warn(ctx, report, f"Could not expire password for '{username}': {result.output}")

    if user_config.grant_sudo:
        sudoers_file = f"/etc/sudoers.d/{username}"
        result = ctx.wsl.run_in_guest(
            guest_name,
            ["install", "--mode", "0440", "/dev/stdin", sudoers_file],
            input=f"{username} ALL=(ALL) NOPASSWD:ALL\n",
        )
        if result.success:
            ctx.logger.info("Granted passwordless sudo via %s", sudoers_file)
        else:
            _warn(ctx, report, f"Could not write {sudoers_file}: {result.output}")

    if user_config.set_default:
        result = ctx.wsl.set_default_user(guest_name, username)
        if result.success:
            ctx.logger.info("Default login set to '%s'", username)
        else:
            _warn(ctx, report, f"Could not set default login to '{username}': {result.output}")

    return True
