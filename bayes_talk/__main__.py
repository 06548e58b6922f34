import sys

from bayes_talk.cli import main

sys.exit(main())
