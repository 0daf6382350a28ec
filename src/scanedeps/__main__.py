from scanedeps.cli import main

raise SystemExit(main())
