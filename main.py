from app.autotest.cli import main

if __name__ == "__main__":
    # Equivalent to the ``autotest`` console script; run from the project root
    # so the default ``cases`` directory and ``data`` paths resolve.
    raise SystemExit(main())
