import click

from rheftools.commands.rhef import rhef_group
from rheftools.commands.utils import utils_group


@click.group(context_settings={"show_default": True})
def main():
    pass


main.add_command(rhef_group)  # type: ignore
main.add_command(utils_group)  # type: ignore

if __name__ == "__main__":
    main()
