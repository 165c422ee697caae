from cssnpm.cli import main

raise SystemExit(main())
