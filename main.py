"""Rate one outfit photo locally: ``python main.py path/to/photo.jpg``."""

import json
import sys

from rater_app.app import OutfitRaterApp
from tools.identity import AuthUser, StaticIdentityProvider


def main() -> None:
    if len(sys.argv) != 2:
        raise SystemExit("usage: python main.py <image-path>")

    # The local server only checks that a bearer credential is present.
    identity = StaticIdentityProvider(AuthUser(id="local-user"), token="local-dev-token")
    app = OutfitRaterApp(identity=identity)
    outcome = app.rate_outfit(sys.argv[1])
    print(json.dumps(outcome.record.fields.to_dict(), indent=2))
    print(json.dumps(app.stats.to_dict() if app.stats else {}, indent=2))
    for note in app.state.pop_notifications():
        print(f"[{note.level}] {note.message}")


if __name__ == "__main__":
    main()
