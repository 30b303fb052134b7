from livelens_relay.runner import main


if __name__ == "__main__":
    raise SystemExit(main())
