from arc_countdown.bot import main

if __name__ == "__main__":
    main()
