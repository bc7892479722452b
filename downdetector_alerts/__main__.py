from downdetector_alerts.main import main

raise SystemExit(main())
