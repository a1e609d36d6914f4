from sonos2mqtt.cli import main

raise SystemExit(main())
