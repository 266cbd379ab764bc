from servicewatch.cli import main

raise SystemExit(main())
