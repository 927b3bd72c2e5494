import asyncio
import sys

from dotenv import load_dotenv
from loguru import logger

from student_portal_client.app_config import load_json_config, parse_app_config, resolve_runtime_env
from student_portal_client.bootstrap import bootstrap_runtime
from student_portal_client.shell import PortalShell


async def main() -> None:
    load_dotenv()

    env = resolve_runtime_env()
    app = parse_app_config(load_json_config(), env)
    try:
        runtime = bootstrap_runtime(app)
    except ValueError as ex:
        logger.error(str(ex))
        sys.exit(1)

    shell = PortalShell(runtime.portal, runtime.tz)

    print("student-portal-client (type 'exit' to quit, '/help' for commands)")
    print(f"Service: {app.api_base_url}")
    if runtime.log_descriptions:
        print(f"Logging: {', '.join(runtime.log_descriptions)}")
    print()

    try:
        await shell.start()
        if shell.requires_login and env.email and env.password:
            await shell.login(env.email, env.password)

        while True:
            if shell.requires_login:
                if not await shell.prompt_login():
                    break
                continue

            try:
                user_input = input("you> ")
            except (EOFError, KeyboardInterrupt):
                break

            trimmed = user_input.strip()

            if trimmed in ("exit", "quit"):
                break

            if not trimmed:
                continue

            try:
                await shell.run(trimmed)
                print()
            except Exception as ex:
                logger.error(f"Unhandled error: {ex}")
    finally:
        await runtime.close()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
