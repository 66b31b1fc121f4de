SPECIALIZATIONS = [
    "Criminal Law", "Civil Law", "Corporate Law", "Family Law", "Property Law",
    "Tax Law", "Intellectual Property", "Labor Law", "Constitutional Law",
    "Environmental Law", "GST Law", "Cyber Law", "Banking Law", "Insurance Law",
    "Immigration Law", "Consumer Protection", "Real Estate Law", "Medical Negligence",
    "Motor Accident Claims", "Arbitration Law", "Company Law", "Securities Law",
    "Customs Law", "Income Tax", "Land Acquisition", "RERA Law", "Sexual Harassment",
    "Domestic Violence", "Child Custody", "Divorce Law", "Inheritance Law",
    "Wills & Probate", "Partnership Law", "FEMA Law", "Drug Laws", "Educational Law",
    "Media & Entertainment Law", "Sports Law", "Aviation Law", "Maritime Law", "Other",
]

INDIAN_STATES = [
    "Andhra Pradesh", "Arunachal Pradesh", "Assam", "Bihar", "Chhattisgarh",
    "Goa", "Gujarat", "Haryana", "Himachal Pradesh", "Jharkhand",
    "Karnataka", "Kerala", "Madhya Pradesh", "Maharashtra", "Manipur",
    "Meghalaya", "Mizoram", "Nagaland", "Odisha", "Punjab",
    "Rajasthan", "Sikkim", "Tamil Nadu", "Telangana", "Tripura",
    "Uttar Pradesh", "Uttarakhand", "West Bengal", "Delhi", "Puducherry",
    "Chandigarh", "Lakshadweep", "Andaman and Nicobar Islands",
    "Dadra and Nagar Haveli and Daman and Diu", "Jammu and Kashmir", "Ladakh",
]

# E-stamps are also issued by these metro registries
STAMP_REGIONS = INDIAN_STATES + ["Mumbai", "Kolkata", "Chennai", "Bengaluru"]
