"""
German area codes (Ortsnetzkennzahlen) without the national trunk prefix.

Codes are 2 to 5 digits long and the numbering plan is prefix-free, so a
longest-prefix lookup from 5 digits down to 2 is unambiguous.
"""

AREA_CODES: dict[str, str] = {
    # Two-digit codes
    "30": "Berlin",
    "40": "Hamburg",
    "69": "Frankfurt am Main",
    "89": "München",
    # Three-digit codes
    "201": "Essen",
    "202": "Wuppertal",
    "203": "Duisburg",
    "208": "Oberhausen",
    "209": "Gelsenkirchen",
    "211": "Düsseldorf",
    "212": "Solingen",
    "214": "Leverkusen",
    "221": "Köln",
    "228": "Bonn",
    "231": "Dortmund",
    "234": "Bochum",
    "241": "Aachen",
    "251": "Münster",
    "261": "Koblenz",
    "271": "Siegen",
    "331": "Potsdam",
    "335": "Frankfurt (Oder)",
    "340": "Dessau-Roßlau",
    "341": "Leipzig",
    "345": "Halle (Saale)",
    "351": "Dresden",
    "355": "Cottbus",
    "361": "Erfurt",
    "365": "Gera",
    "371": "Chemnitz",
    "375": "Zwickau",
    "381": "Rostock",
    "385": "Schwerin",
    "391": "Magdeburg",
    "421": "Bremen",
    "431": "Kiel",
    "441": "Oldenburg",
    "451": "Lübeck",
    "471": "Bremerhaven",
    "511": "Hannover",
    "521": "Bielefeld",
    "531": "Braunschweig",
    "541": "Osnabrück",
    "551": "Göttingen",
    "561": "Kassel",
    "611": "Wiesbaden",
    "621": "Mannheim",
    "631": "Kaiserslautern",
    "641": "Gießen",
    "651": "Trier",
    "661": "Fulda",
    "681": "Saarbrücken",
    "711": "Stuttgart",
    "721": "Karlsruhe",
    "731": "Ulm",
    "761": "Freiburg im Breisgau",
    "821": "Augsburg",
    "831": "Kempten",
    "841": "Ingolstadt",
    "851": "Passau",
    "871": "Landshut",
    "911": "Nürnberg",
    "921": "Bayreuth",
    "931": "Würzburg",
    "941": "Regensburg",
    "951": "Bamberg",
    # Four-digit codes
    "2151": "Krefeld",
    "2161": "Mönchengladbach",
    "2191": "Remscheid",
    "2323": "Herne",
    "2331": "Hagen",
    "2381": "Hamm",
    "3581": "Görlitz",
    "3591": "Bautzen",
    "3641": "Jena",
    "5121": "Hildesheim",
    "5361": "Wolfsburg",
    "6021": "Aschaffenburg",
    "6031": "Friedberg (Hessen)",
    "6102": "Neu-Isenburg",
    "6103": "Langen (Hessen)",
    "6131": "Mainz",
    "6142": "Rüsselsheim",
    "6151": "Darmstadt",
    "6152": "Groß-Gerau",
    "6172": "Bad Homburg",
    "6181": "Hanau",
    "6201": "Weinheim",
    "6202": "Schwetzingen",
    "6204": "Viernheim",
    "6205": "Hockenheim",
    "6206": "Lampertheim",
    "6221": "Heidelberg",
    "6232": "Speyer",
    "6241": "Worms",
    "6251": "Bensheim",
    "6252": "Heppenheim",
    "6321": "Neustadt an der Weinstraße",
    "6421": "Marburg",
    "6431": "Limburg an der Lahn",
    "6441": "Wetzlar",
    "7071": "Tübingen",
    "7121": "Reutlingen",
    "7131": "Heilbronn",
    "7231": "Pforzheim",
    "7531": "Konstanz",
    "8031": "Rosenheim",
    "9131": "Erlangen",
}
