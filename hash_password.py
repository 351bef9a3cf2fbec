"""
Print a bcrypt hash for hand-editing the data file.

    python hash_password.py 'new-password'
    python hash_password.py            # prompts without echo
"""
import getpass
import sys

from auth import hash_password


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    password = argv[0] if argv else getpass.getpass("Password: ")
    if not password:
        print("No password given", file=sys.stderr)
        return 1

    print("Paste this hash into the user's \"password\" field:")
    print(hash_password(password))
    return 0


if __name__ == "__main__":
    sys.exit(main())
